"""
Basic usage example for OpsMind.

This example demonstrates how to:
1. Ingest a document into a persistent index
2. Run a hybrid vector and keyword search
3. Assemble the ranked chunks into a grounded prompt
"""

from pathlib import Path

from opsmind.ingestion import ChunkingPolicy, EmbeddingService, FAISSDocumentStore
from opsmind.knowledge_base import KnowledgeBase
from opsmind.rag import ContextAssembler

# Knowledge base with persistence; an existing index is loaded automatically
kb = KnowledgeBase(
    embedder=EmbeddingService("all-MiniLM-L6-v2"),
    store=FAISSDocumentStore(embedding_dim=384),
    policy=ChunkingPolicy(chunk_size=800, overlap=100),
    index_path="data/index/handbook",
)

print("=" * 70)
print("OPSMIND - BASIC USAGE")
print("=" * 70)

doc_path = Path("data/docs/employee_handbook.pdf")
if doc_path.exists():
    print(f"\n1. Ingesting: {doc_path.name}")
    report = kb.ingest(doc_path)
    print(f"   Created {report.chunks_created} chunks "
          f"({report.chunks_skipped} duplicates skipped)")
else:
    print(f"   Document not found: {doc_path}")
    print("   Please add a PDF, .txt or .md file to data/docs/")

print(f"\n2. Knowledge Base Statistics:")
print(f"   Total chunks: {kb.size}")
print(f"   Documents: {len(kb.document_ids)}")

if kb.size > 0:
    query = "How many days of annual leave do employees get?"
    print(f"\n3. Searching: '{query}'")
    results = kb.search(query, limit=3)

    for result in results:
        print(f"\n   Rank {result.rank}: Score {result.relevance_score:.3f} "
              f"({result.match_source.value})")
        print(f"   Source: {result.chunk.get_citation()}")
        print(f"   Preview: {result.chunk.content[:150]}...")

    context = ContextAssembler().assemble(results, query)
    print(f"\n4. Prompt context: {context.chunk_count} chunks "
          f"from {', '.join(context.source_files) or 'no files'}")

print("\n" + "=" * 70)
print("Done! The index is saved to: data/index/handbook")
print("=" * 70)
