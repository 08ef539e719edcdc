"""
Rebuild registered retrieval engines from their sources.

Every engine is built into a fresh instance that replaces the shared one once
it is complete, so documents whose source rows have gone drop out of the index.
"""

import logging
import time

from django.core.management.base import BaseCommand, CommandError

from django_ai_retrieval.contrib.retrieval.base import registry

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Rebuild registered retrieval engines from their sources"

    def add_arguments(self, parser):
        parser.add_argument(
            "engine_names",
            nargs="*",
            metavar="engine",
            help="Engines to rebuild (default: every registered engine)",
        )
        parser.add_argument(
            "--dry-run",
            action="store_true",
            help="List the engines and their sources without rebuilding",
        )
        parser.add_argument(
            "--verbose",
            action="store_true",
            help="Log chunking and cache activity while rebuilding",
        )

    def handle(self, *args, **options):
        if options["verbose"]:
            logging.getLogger("django_ai_retrieval").setLevel(logging.DEBUG)

        names = self.resolve_engine_names(options["engine_names"])
        if not names:
            self.stdout.write(self.style.WARNING("No retrieval engines registered"))
            return

        if options["dry_run"]:
            for name in names:
                sources = ", ".join(
                    source.source_id for source in registry.get(name).sources
                )
                self.stdout.write(f"{name}: would rebuild from {sources or 'no sources'}")
            return

        failed = []
        document_total = passage_total = 0

        for name in names:
            started = time.monotonic()
            try:
                engine = registry.rebuild_engine(name)
            except Exception as e:
                logger.exception(f"Rebuilding {name} failed")
                self.stdout.write(self.style.ERROR(f"{name}: failed ({e})"))
                failed.append(name)
                continue

            stats = engine.stats()
            document_total += stats.document_count
            passage_total += stats.passage_count
            line = (
                f"{name}: {stats.document_count} documents, "
                f"{stats.passage_count} passages ({time.monotonic() - started:.2f}s)"
            )
            if engine.is_ready():
                self.stdout.write(self.style.SUCCESS(line))
            else:
                self.stdout.write(self.style.WARNING(f"{line}, nothing to search"))

        self.stdout.write(
            f"Indexed {document_total} documents as {passage_total} passages "
            f"in {len(names) - len(failed)} of {len(names)} engine(s)"
        )
        if failed:
            raise CommandError(f"Could not rebuild: {', '.join(failed)}")

    def resolve_engine_names(self, requested: list[str]) -> list[str]:
        available = registry.list()
        unknown = [name for name in requested if name not in available]
        if unknown:
            raise CommandError(f"Unknown engine names: {', '.join(unknown)}")
        return list(requested or available)
