"""Host-side wiring: settings → collaborators → agent.

`AgentSession` plays the role of the host's state layer. It builds the
three collaborator callables from the reference implementations and hands
them to `Agent.start`:

  build           — `BuildRunner.run()` in the project root
  generate        — `GenerationClient.improve()` with the last build's error
                    diagnostics and a fresh source-context snapshot
  apply_operation — `ProjectFiles.apply()` (rejects paths outside the root)

The session owns no loop state; everything observable lives on
`session.agent` (its `state` snapshot and `audit_log`).
"""

import asyncio
import logging
from typing import Optional

from wisdom.agent.orchestrator import Agent
from wisdom.agent.types import AgentOptions, BuildOutcome, Operation, Proposal
from wisdom.build.runner import BuildRunner
from wisdom.core.config import Settings, get_settings
from wisdom.core.logging import configure_structlog
from wisdom.generation.client import GenerationClient
from wisdom.workspace.context import ContextConfig, collect_context
from wisdom.workspace.files import ProjectFiles

logger = logging.getLogger(__name__)


def options_from_settings(settings: Settings) -> AgentOptions:
    return AgentOptions(
        max_no_improvement_count=settings.max_no_improvement_count,
        continue_on_success=settings.continue_on_success,
        generate_timeout=settings.generate_timeout_seconds,
        abort_on_operation_failure=settings.abort_on_operation_failure,
    )


def context_config_from_settings(settings: Settings) -> ContextConfig:
    return ContextConfig(
        monitored_file_types=list(settings.monitored_file_types),
        excluded_directories=list(settings.excluded_directories),
        max_depth=settings.max_context_depth,
        max_file_size=settings.max_context_file_size,
    )


class AgentSession:
    """Drives one `Agent` against one project root."""

    def __init__(
        self,
        settings: Settings,
        agent: Optional[Agent] = None,
        build_runner: Optional[BuildRunner] = None,
        generation_client: Optional[GenerationClient] = None,
        files: Optional[ProjectFiles] = None,
    ) -> None:
        self.settings = settings
        root = settings.project_root
        self.agent = agent or Agent()
        self.build_runner = build_runner or BuildRunner(
            root=root,
            command=settings.build_command,
            timeout=settings.build_timeout_seconds,
            error_pattern=settings.error_pattern,
        )
        self.generation_client = generation_client or GenerationClient(
            base_url=settings.generation_base_url,
            timeout=settings.generation_http_timeout_seconds,
        )
        self.files = files or ProjectFiles(root)
        self.context_config = context_config_from_settings(settings)

    async def start(self, message: str) -> None:
        logger.info("Starting agent session in %s", self.files.root)
        await self.agent.start(
            message,
            options_from_settings(self.settings),
            build=self._build,
            generate=self._generate,
            apply_operation=self._apply,
        )

    def stop(self) -> None:
        """Stop the agent cooperatively and terminate a running build."""
        self.agent.stop()
        self.build_runner.stop()

    async def _build(self) -> BuildOutcome:
        return await self.build_runner.run()

    async def _generate(self, message: str, build_status: str) -> Proposal:
        snapshot = await asyncio.to_thread(collect_context, self.files.root, self.context_config)
        return await self.generation_client.improve(
            message,
            build_status,
            errors=self.build_runner.errors(),
            sources=snapshot.render(),
        )

    async def _apply(self, operation: Operation) -> None:
        await self.files.apply(operation)


def create_session(settings: Optional[Settings] = None) -> AgentSession:
    """Host entry point: load settings, configure logging, build the session."""
    settings = settings or get_settings()

    # Configure structlog before any collaborator logs anything
    configure_structlog(debug=settings.debug)

    return AgentSession(settings)
