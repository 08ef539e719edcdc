"""
Django management command to query a RetrievalEngine from the shell.

Builds the engine from its sources, then prints the ranked passages or the
assembled context for the query.
"""

from django.core.management.base import BaseCommand, CommandError

from django_ai_retrieval.contrib.retrieval.base import registry


class Command(BaseCommand):
    help = "Search a registered RetrievalEngine"

    def add_arguments(self, parser):
        parser.add_argument("engine_name", help="Registered engine name")
        parser.add_argument("query", help="Query text")
        parser.add_argument(
            "--top-k",
            type=int,
            default=None,
            help="Maximum number of passages to return",
        )
        parser.add_argument(
            "--context",
            action="store_true",
            help="Print the assembled context instead of the ranked passages",
        )
        parser.add_argument(
            "--max-chars",
            type=int,
            default=None,
            help="Character budget for --context",
        )

    def handle(self, *args, **options):
        try:
            engine = registry.get_engine(options["engine_name"])
        except KeyError as e:
            raise CommandError(str(e)) from e

        if not engine.is_ready():
            engine.build()

        query = options["query"]

        if options["context"]:
            context = engine.get_relevant_context(query, options["max_chars"])
            if not context:
                self.stdout.write(self.style.WARNING("No relevant context found"))
                return
            self.stdout.write(context)
            return

        results = engine.search(query, options["top_k"])
        if not results:
            self.stdout.write(self.style.WARNING("No results found"))
            return

        for position, result in enumerate(results, 1):
            label = "direct match" if result.direct_match else f"{result.score:.3f}"
            self.stdout.write(
                self.style.SUCCESS(f"{position}. {result.document_name} ({label})")
            )
            self.stdout.write(f"   {result.content[:200]}")
