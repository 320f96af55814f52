#!/usr/bin/env python3
"""
Health check command for monitoring pipeline prerequisites.

Checks the API credential, the entity registry and the output directory,
and can optionally make one live call to the analysis API.
"""

import logging
import os
from argparse import Namespace
from pathlib import Path

from .base import BaseCommand
from core.exceptions import ConfigError

logger = logging.getLogger(__name__)


class HealthCommand(BaseCommand):
    """Handle pipeline health checks."""

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute health subcommand."""
        try:
            if subcommand == "check":
                return self.check(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except (Exception, KeyboardInterrupt) as e:
            return self.handle_error(e, f"health {subcommand}")

    def check(self, args: Namespace) -> int:
        """Run the health check."""
        print("🏥 Mood Pulse Health Check")
        print("=" * 50)

        overall_healthy = True
        config = self.config

        print("\n⚙️  Configuration:")
        if config.has_api_key():
            print("  ✅ GEMINI_API_KEY: set")
        else:
            print("  ❌ GEMINI_API_KEY: missing")
            overall_healthy = False
        print(f"  ℹ️  Model: {config.integrations.gemini_model}")
        print(f"  ℹ️  Schedule: {', '.join(str(h) for h in config.app.schedule_hours)} ({config.app.timezone})")
        print(f"  ℹ️  Languages: {', '.join(config.app.languages)}")

        print("\n📋 Entities:")
        try:
            entities = self.entities
            print(f"  ✅ {len(entities)} tracked: {', '.join(entity.id for entity in entities)}")
        except ConfigError as e:
            print(f"  ❌ {e.message}")
            overall_healthy = False

        print("\n💾 Output Directory:")
        output_dir = Path(getattr(args, 'output_dir', None) or config.app.output_dir)
        probe = output_dir if output_dir.exists() else output_dir.parent
        if os.access(probe, os.W_OK):
            print(f"  ✅ {output_dir} is writable")
        else:
            print(f"  ❌ {output_dir} is not writable")
            overall_healthy = False

        if getattr(args, 'test', False) and config.has_api_key():
            print("\n🔌 Analysis API:")
            if self.create_analysis_client().test_connection():
                print("  ✅ Connection: OK")
            else:
                print("  ❌ Connection: FAILED")
                overall_healthy = False

        print("\n" + "=" * 50)
        if overall_healthy:
            print("✅ Overall Status: HEALTHY")
            return 0
        else:
            print("❌ Overall Status: UNHEALTHY")
            return 1
