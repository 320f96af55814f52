#!/usr/bin/env python3
"""
Base command class for the modular command architecture.

Provides common functionality and interface that all commands inherit.
Services come from the dependency injection container so tests can swap
them out.
"""

import logging
from abc import ABC, abstractmethod
from argparse import Namespace
from typing import List, Optional

from core.container import get_container
from core.exceptions import ConfigError, MoodPulseError
from core.store import MoodStore

logger = logging.getLogger(__name__)

CONFIG_ERROR_EXIT_CODE = 2


class BaseCommand(ABC):
    """
    Base class for all command endpoints.

    Provides access to configuration and pipeline services, plus the shared
    error-to-exit-code mapping.
    """

    def __init__(self, container=None):
        """
        Initialize base command with dependency injection container.

        Args:
            container: Optional container instance. If None, uses global container.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._container = container or get_container()

    @property
    def config(self):
        return self._container.get('config')

    @property
    def entities(self):
        return self._container.get('entities')

    @property
    def feed_fetcher(self):
        return self._container.get('feed_fetcher')

    @property
    def normalizer(self):
        return self._container.get('normalizer')

    @property
    def aligner(self):
        return self._container.get('aligner')

    @property
    def llm_logger(self):
        return self._container.get('llm_logger')

    def create_store(self, output_dir: Optional[str] = None):
        """Create a store for output_dir, defaulting to the configured directory."""
        return MoodStore(output_dir or self.config.app.output_dir, normalizer=self.normalizer)

    def create_analysis_client(self):
        """Create the analysis client; raises ConfigError when the API key is missing."""
        return self._container.get('analysis_client')

    @abstractmethod
    def execute(self, subcommand: str, args: Namespace) -> int:
        """
        Execute the command with given subcommand and arguments.

        Args:
            subcommand: The specific action to perform
            args: Parsed command line arguments

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        pass

    def get_available_subcommands(self) -> List[str]:
        """Public methods other than the base interface."""
        methods = []
        for attr_name in dir(self):
            if attr_name.startswith('_') or attr_name in ('execute', 'get_available_subcommands', 'handle_error'):
                continue
            if attr_name.startswith('create_') or isinstance(getattr(type(self), attr_name, None), property):
                continue
            if callable(getattr(self, attr_name)):
                methods.append(attr_name)
        return methods

    def handle_error(self, error: BaseException, context: str = "") -> int:
        """
        Standard error handling for commands.

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred

        Returns:
            Appropriate exit code
        """
        error_msg = f"{context}: {error}" if context else str(error)

        if isinstance(error, ConfigError):
            self.logger.error(error_msg)
            return CONFIG_ERROR_EXIT_CODE
        if isinstance(error, KeyboardInterrupt):
            self.logger.info("Command interrupted by user")
            return 130

        self.logger.error(error_msg, exc_info=not isinstance(error, MoodPulseError))
        if isinstance(error, PermissionError):
            return 13
        elif isinstance(error, ValueError):
            return 22
        else:
            return 1
