"""Application orchestrator — wires together all components."""

from __future__ import annotations

import logging
from pathlib import Path

from rich.logging import RichHandler

from convman.config.settings import SettingsResolver, load_config
from convman.conversation.manager import ConfigSetup, ConversationManager, FileSetup
from convman.conversation.store import ConversationStore
from convman.llm import create_llm_client
from convman.ui.shell import InteractiveShell

logger = logging.getLogger(__name__)


class Application:
    """Top-level application orchestrator."""

    def __init__(
        self,
        config_path: str | Path | None = None,
        user_id: str = "default",
        preset: str | None = None,
        prompt_file: str | None = None,
        resume: bool = False,
    ) -> None:
        self.settings = load_config(config_path)
        self.resolver = SettingsResolver(self.settings)
        defaults = self.resolver.resolve()
        self.llm = create_llm_client(self.settings.llm, defaults.model)
        self.store = ConversationStore(self.settings.storage_path, self.settings.log_path)
        self.manager = ConversationManager(
            llm=self.llm,
            generation=defaults.generation(),
            resolver=self.resolver,
            store=self.store,
            user_id=user_id,
        )
        self._preset = preset
        self._prompt_file = prompt_file
        self._resume = resume

    async def start(self, *, verbose: bool = False) -> None:
        """Configure the session and run the interactive shell."""
        self._setup_logging(verbose)

        if self._resume:
            self.manager.load_latest_conversation()

        if self._prompt_file:
            self.manager.configure_system(FileSetup(path=self._prompt_file))
        else:
            self.manager.configure_system(ConfigSetup(preset_id=self._preset))

        shell = InteractiveShell(self.manager)
        await shell.run()

    def _setup_logging(self, verbose: bool) -> None:
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.WARNING,
            format="%(message)s",
            datefmt="[%X]",
            handlers=[RichHandler(show_path=False)],
        )
        logging.getLogger("httpx").setLevel(logging.WARNING)
        logging.getLogger("openai").setLevel(logging.WARNING)
        logging.getLogger("anthropic").setLevel(logging.WARNING)
