"""
Command-line interface for the OpsMind knowledge assistant.

Provides commands for document ingestion, hybrid search, streamed
chat, re-embedding and index inspection.

Usage:
    python -m opsmind.cli ingest <file_or_directory>
    python -m opsmind.cli search "your query"
    python -m opsmind.cli chat
    python -m opsmind.cli reembed --only-missing
    python -m opsmind.cli info
    python -m opsmind.cli clear --confirm
"""

import logging

import click
from pathlib import Path

from .config import AppConfig
from .exceptions import OpsMindError, RetrievalUnavailableError
from .knowledge_base import KnowledgeBase
from .utils.logger import get_logger, set_global_level

logger = get_logger(__name__)


def _create_kb(config: AppConfig) -> KnowledgeBase:
    """Create a KnowledgeBase wired from the given configuration."""
    from .ingestion.embeddings.embedding_service import EmbeddingService
    from .ingestion.storage.faiss_store import FAISSDocumentStore

    embedder = EmbeddingService(
        model_name=config.embedding.model_name,
        batch_size=config.embedding.batch_size,
    )
    return KnowledgeBase(
        embedder=embedder,
        store=FAISSDocumentStore(embedding_dim=config.embedding.dimension),
        policy=config.chunking.to_policy(),
        index_path=config.storage.index_path,
        auto_save=config.storage.auto_save,
        over_fetch_factor=config.retrieval.over_fetch_factor,
        max_workers=config.retrieval.max_workers,
    )


def _fail(message: str) -> None:
    click.echo(click.style(message, fg="red"))
    raise SystemExit(1)


@click.group()
@click.option(
    "--config", "config_path",
    default="configs/config.yaml",
    help="Path to the YAML configuration file.",
    show_default=True,
)
@click.option("--index", "-i", default=None, help="Override the index path.")
@click.option("--chunk-size", "-c", default=None, type=int,
              help="Override the maximum chunk size in characters.")
@click.option("--chunk-overlap", default=None, type=int,
              help="Override the overlap between chunks in characters.")
@click.option("--model", "-m", default=None,
              help="Override the sentence-transformer embedding model.")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def cli(ctx, config_path, index, chunk_size, chunk_overlap, model, verbose):
    """OpsMind - retrieval-augmented chat over your documents.

    Ingest documents (.pdf, .txt, .md), build a hybrid vector and
    keyword index, and ask questions answered from your documents.
    """
    if verbose:
        set_global_level(logging.DEBUG)

    config = AppConfig.from_yaml(config_path)
    overrides = {}
    if index:
        overrides["storage"] = config.storage.model_copy(update={"index_path": index})
    if chunk_size is not None or chunk_overlap is not None:
        chunking = config.chunking.model_dump()
        if chunk_size is not None:
            chunking["chunk_size"] = chunk_size
        if chunk_overlap is not None:
            chunking["chunk_overlap"] = chunk_overlap
        try:
            overrides["chunking"] = type(config.chunking)(**chunking)
        except ValueError as e:
            _fail(f"Invalid chunking options: {e}")
    if model:
        overrides["embedding"] = config.embedding.model_copy(update={"model_name": model})

    ctx.ensure_object(dict)
    ctx.obj["config"] = config.model_copy(update=overrides)


@cli.command()
@click.argument("path", type=click.Path(exists=True))
@click.pass_context
def ingest(ctx, path):
    """Ingest a document or directory of documents.

    Parses the file(s), chunks the content, embeds every chunk,
    and stores them in the index.

    \b
    Examples:
        python -m opsmind.cli ingest handbook.pdf
        python -m opsmind.cli ingest ./documents/
        python -m opsmind.cli -c 400 --chunk-overlap 50 ingest notes.md
    """
    kb = _create_kb(ctx.obj["config"])
    path = Path(path)

    if path.is_file():
        click.echo(f"Ingesting: {path.name}")
        try:
            report = kb.ingest(path)
        except (ValueError, OpsMindError) as e:
            _fail(f"  ✗ {e}")
        click.echo(click.style(f"  ✓ Created {report.chunks_created} chunks", fg="green"))
        if report.chunks_replaced:
            click.echo(f"  Replaced {report.chunks_replaced} chunks of the previous version")
        if report.chunks_skipped:
            click.echo(f"  Skipped {report.chunks_skipped} duplicate chunks")
        if report.embedding_failures:
            click.echo(click.style(
                f"  {report.embedding_failures} chunks stored without embeddings "
                "(run 'reembed --only-missing')", fg="yellow"
            ))
        if report.store_failures:
            click.echo(click.style(
                f"  {report.store_failures} chunks could not be stored", fg="red"
            ))
    else:
        click.echo(f"Scanning directory: {path}")
        click.echo(f"Supported formats: {', '.join(kb.supported_formats)}")
        stats = kb.ingest_directory(path)
        click.echo()
        click.echo(click.style("Ingestion complete:", bold=True))
        click.echo(f"  Files processed: {stats['files_processed']}")
        click.echo(f"  Total chunks:    {stats['total_chunks']}")
        if stats["files_failed"] > 0:
            click.echo(click.style(
                f"  Files failed:    {stats['files_failed']}", fg="red"
            ))
            for err in stats["errors"]:
                click.echo(f"    - {err['file']}: {err['error']}")

    click.echo(f"\nIndex size: {kb.size} chunks ({len(kb.document_ids)} documents)")


@cli.command()
@click.argument("query")
@click.option("--limit", "-k", default=None, type=int,
              help="Maximum number of results (default from config).")
@click.option("--min-score", default=None, type=float,
              help="Relevance floor (default from config).")
@click.option("--doc-id", "-d", default=None,
              help="Filter results to a specific document ID.")
@click.option("--show-content/--no-content", default=True,
              help="Show chunk content in results.")
@click.pass_context
def search(ctx, query, limit, min_score, doc_id, show_content):
    """Search the knowledge base with hybrid vector and keyword matching.

    \b
    Examples:
        python -m opsmind.cli search "leave policy"
        python -m opsmind.cli search "expense limits" --limit 5 --min-score 0.1
    """
    config = ctx.obj["config"]
    kb = _create_kb(config)

    if kb.size == 0:
        click.echo(click.style(
            "Index is empty. Ingest some documents first: "
            "python -m opsmind.cli ingest <path>", fg="yellow"
        ))
        raise SystemExit(1)

    limit = limit or config.retrieval.limit
    min_score = config.retrieval.min_score if min_score is None else min_score
    click.echo(f'Searching for: "{query}" (limit {limit}, min score {min_score})\n')

    try:
        results = kb.search(query, limit=limit, min_score=min_score, doc_id=doc_id)
    except ValueError as e:
        _fail(str(e))
    except RetrievalUnavailableError as e:
        _fail(f"Search unavailable: {e}")

    if not results:
        click.echo(click.style("No results found.", fg="yellow"))
        return

    for result in results:
        chunk = result.chunk
        score = result.relevance_score
        score_colour = "green" if score > 0.5 else "yellow" if score > 0.3 else "red"

        click.echo(click.style(
            f"[{result.rank}] Score: {score:.4f} ({result.match_source.value})",
            fg=score_colour, bold=True,
        ))
        click.echo(f"    Source: {chunk.get_citation()}")
        click.echo(f"    Chunk: {chunk.sequence_index + 1}/{chunk.total_chunks}")

        if show_content:
            content = chunk.content.strip()
            if len(content) > 300:
                content = content[:300] + "..."
            click.echo(f"    Content: {content}")
        click.echo()


@cli.command()
@click.option("--batch-size", default=None, type=int,
              help="Chunks per batch (default from config).")
@click.option("--pause", default=None, type=float,
              help="Seconds to pause between batches (default from config).")
@click.option("--only-missing/--all", default=None,
              help="Only embed chunks without an embedding.")
@click.pass_context
def reembed(ctx, batch_size, pause, only_missing):
    """Recompute embeddings for stored chunks.

    Use after changing the embedding model, or with --only-missing
    to fill in chunks whose embedding failed during ingestion.
    """
    config = ctx.obj["config"]
    kb = _create_kb(config)
    settings = config.reembed

    try:
        report = kb.reembed(
            batch_size=batch_size or settings.batch_size,
            pause_seconds=settings.pause_seconds if pause is None else pause,
            only_missing=settings.only_missing if only_missing is None else only_missing,
        )
    except (ValueError, OpsMindError) as e:
        _fail(f"Re-embedding failed: {e}")
    click.echo(click.style(f"Updated: {report.updated}", fg="green"))
    if report.errored:
        click.echo(click.style(f"Errors:  {report.errored}", fg="red"))
        for chunk_id in report.failed_chunk_ids:
            click.echo(f"    - {chunk_id}")


@cli.command()
@click.pass_context
def info(ctx):
    """Show index statistics, search indexes and document inventory."""
    config = ctx.obj["config"]
    kb = _create_kb(config)

    click.echo(click.style("Knowledge Base Info", bold=True))
    click.echo(f"  Index path:      {config.storage.index_path}")
    click.echo(f"  Chunk size:      {config.chunking.chunk_size}")
    click.echo(f"  Chunk overlap:   {config.chunking.chunk_overlap}")
    click.echo(f"  Model:           {config.embedding.model_name}")
    click.echo(f"  Total chunks:    {kb.size}")
    click.echo(f"  With embeddings: {kb.count_chunks({'has_embedding': True})}")
    click.echo(f"  Documents:       {len(kb.document_ids)}")

    click.echo(click.style("\nSearch indexes:", bold=True))
    for idx in kb.list_indexes():
        dims = f"{idx.dimension} dims, " if idx.dimension else ""
        click.echo(f"  {idx.name} ({dims}path={idx.path}, similarity={idx.similarity})")

    if kb.document_ids:
        click.echo(click.style("\nDocuments:", bold=True))
        for doc_id in kb.document_ids:
            chunks = kb.get_document_chunks(doc_id)
            if chunks:
                click.echo(f"  [{doc_id[:8]}...] {chunks[0].file_name} ({len(chunks)} chunks)")


@cli.command("delete")
@click.argument("doc_id")
@click.option("--confirm", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_doc(ctx, doc_id, confirm):
    """Delete a document from the index by its ID.

    Use 'info' command to see document IDs.
    """
    kb = _create_kb(ctx.obj["config"])

    if not confirm:
        click.confirm(f"Delete document {doc_id}?", abort=True)

    deleted = kb.delete_document(doc_id)
    if deleted > 0:
        click.echo(click.style(f"Deleted {deleted} chunks.", fg="green"))
    else:
        click.echo(click.style(f"No document found with ID: {doc_id}", fg="yellow"))


@cli.command()
@click.option("--confirm", is_flag=True, required=True,
              help="Required flag to confirm clearing the index.")
@click.pass_context
def clear(ctx, confirm):
    """Clear the entire index. Requires --confirm flag."""
    kb = _create_kb(ctx.obj["config"])
    size_before = kb.size
    kb.clear()
    if kb.index_path:
        kb.save()
    click.echo(click.style(
        f"Index cleared. Removed {size_before} chunks.", fg="green"
    ))


@cli.command()
@click.option("--limit", "-k", default=None, type=int,
              help="Number of context chunks per question.")
@click.pass_context
def chat(ctx, limit):
    """Interactive chat answered from the knowledge base.

    Answers stream as they are generated. Maintains conversation
    context for follow-up questions. Requires ANTHROPIC_API_KEY.
    """
    from .rag.context import ContextAssembler
    from .rag.llm import ClaudeProvider
    from .rag.pipeline import ChatPipeline

    config = ctx.obj["config"]
    kb = _create_kb(config)

    if kb.size == 0:
        click.echo(click.style(
            "Index is empty. Ingest documents first.", fg="yellow"
        ))
        raise SystemExit(1)

    gen = config.generation
    llm = ClaudeProvider(
        model=gen.model, max_tokens=gen.max_tokens, temperature=gen.temperature
    )
    if not llm.is_available():
        _fail("ANTHROPIC_API_KEY not set. Export it to use the chat feature.")

    pipeline = ChatPipeline(
        retriever=kb.retriever,
        assembler=ContextAssembler(
            max_context_chars=gen.max_context_chars,
            max_history_messages=gen.max_history_messages,
            max_history_tokens=gen.max_history_tokens,
        ),
        llm_provider=llm,
        limit=limit or config.retrieval.limit,
        min_score=config.retrieval.min_score,
    )

    click.echo(click.style("OpsMind Chat", bold=True))
    click.echo(f"Index: {kb.size} chunks from {len(kb.document_ids)} documents")
    click.echo("Type 'quit' to exit, 'clear' to reset conversation.\n")

    while True:
        try:
            question = click.prompt(
                click.style("You", fg="cyan", bold=True),
                prompt_suffix=": ",
            )
        except (EOFError, KeyboardInterrupt, click.exceptions.Abort):
            click.echo("\nGoodbye!")
            break

        question = question.strip()
        if not question:
            continue
        if question.lower() in ("quit", "exit", "q"):
            click.echo("Goodbye!")
            break
        if question.lower() == "clear":
            pipeline.clear_history()
            click.echo(click.style("Conversation cleared.\n", fg="yellow"))
            continue

        try:
            response = pipeline.ask(question)
            click.echo()
            click.echo(click.style("Assistant", fg="green", bold=True) + ": ", nl=False)
            for fragment in response.answer_stream:
                click.echo(fragment, nl=False)
            click.echo("\n")

            if response.sources:
                click.echo(click.style("Sources:", dim=True))
                for meta in response.citations[:3]:
                    click.echo(click.style(
                        f"  • {meta.citation} (relevance {meta.confidence:.2f})", dim=True
                    ))
                click.echo()

        except Exception as e:
            logger.exception("Chat turn failed")
            click.echo(click.style(f"Error: {e}", fg="red"))
            click.echo()


if __name__ == "__main__":
    cli()
