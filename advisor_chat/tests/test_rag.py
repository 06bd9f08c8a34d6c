import tempfile
from pathlib import Path

import pytest

from advisor_chat.adapters.advisor_qa import QuestionAnswerAdvisor
from advisor_chat.adapters.embed_hash import HashingEmbedder
from advisor_chat.adapters.loader_txt import TxtLoader
from advisor_chat.adapters.splitter_chars import CharTextSplitter
from advisor_chat.adapters.vector_store_json import JsonVectorStore
from advisor_chat.domain.rag_models import Document, LoadedPage, SearchOptions
from advisor_chat.use_cases.chat_client import ChatClient
from advisor_chat.use_cases.document_indexer import DocumentIndexer


def _write_docs(d: Path):
    france = d / "france.txt"
    germany = d / "germany.txt"
    france.write_text("Paris is the capital of France.\n", encoding="utf-8")
    germany.write_text("Berlin hosts the German parliament.\n", encoding="utf-8")
    return france, germany


def test_index_and_search_top_k():
    with tempfile.TemporaryDirectory() as d:
        d = Path(d)
        france, germany = _write_docs(d)

        store = JsonVectorStore(str(d / "rag.json"), HashingEmbedder())
        indexer = DocumentIndexer(loaders={"txt": TxtLoader()}, splitter=CharTextSplitter(), store=store)

        n = indexer.ingest_paths([str(france), str(germany)])
        assert n == 2
        assert store.count() == 2

        hits = store.search("What is the capital of France?", SearchOptions(top_k=1))
        assert len(hits) == 1
        assert "Paris" in hits[0].content
        assert hits[0].metadata["source"] == str(france)
        assert hits[0].score is not None

        # файл перечитывается с диска
        again = JsonVectorStore(str(d / "rag.json"), HashingEmbedder())
        assert again.count() == 2


def test_filter_and_threshold():
    with tempfile.TemporaryDirectory() as d:
        d = Path(d)
        france, germany = _write_docs(d)
        store = JsonVectorStore(str(d / "rag.json"), HashingEmbedder())
        DocumentIndexer(loaders={"txt": TxtLoader()}, splitter=CharTextSplitter(), store=store).ingest_paths(
            [str(france), str(germany)]
        )

        only_germany = store.search("capital of France", SearchOptions(top_k=5, similarity_threshold=-1.0, filter={"source": str(germany)}))
        assert [h.metadata["source"] for h in only_germany] == [str(germany)]

        assert store.search("capital of France", SearchOptions(top_k=5, similarity_threshold=1.01)) == []
        assert store.search("capital of France", SearchOptions(top_k=0)) == []


def test_add_upserts_by_id_and_delete_by_source():
    with tempfile.TemporaryDirectory() as d:
        store = JsonVectorStore(str(Path(d) / "rag.json"), HashingEmbedder())

        store.add([Document(content="old", metadata={"source": "A.txt"}, id="x")])
        store.add([Document(content="new", metadata={"source": "a.txt"}, id="x")])
        assert store.count() == 1
        assert store.search("new")[0].content == "new"

        assert store.delete_by_source("A.TXT") == 1
        assert store.count() == 0
        assert store.delete(["missing"]) == 0


def test_unknown_extension_is_rejected():
    with tempfile.TemporaryDirectory() as d:
        store = JsonVectorStore(str(Path(d) / "rag.json"), HashingEmbedder())
        indexer = DocumentIndexer(loaders={"txt": TxtLoader()}, splitter=CharTextSplitter(), store=store)
        with pytest.raises(ValueError):
            indexer.ingest_paths([str(Path(d) / "slides.pptx")])


def test_splitter_windows_overlap():
    text = " ".join(f"w{i:03d}" for i in range(200))
    docs = CharTextSplitter(chunk_chars=200, overlap_chars=40).split([LoadedPage(source="s.txt", text=text, page=3)])

    assert len(docs) > 1
    assert [d.metadata["part"] for d in docs] == list(range(len(docs)))
    assert all(d.metadata["page"] == 3 for d in docs)
    assert all(len(d.content) <= 200 for d in docs)
    # соседние куски перекрываются
    assert docs[0].content.split()[-1] in docs[1].content


def test_qa_advisor_over_json_store(model_factory):
    with tempfile.TemporaryDirectory() as d:
        d = Path(d)
        france, germany = _write_docs(d)
        store = JsonVectorStore(str(d / "rag.json"), HashingEmbedder())
        DocumentIndexer(loaders={"txt": TxtLoader()}, splitter=CharTextSplitter(), store=store).ingest_paths(
            [str(france), str(germany)]
        )

        model = model_factory("Paris")
        advisor = QuestionAnswerAdvisor(store, search_options=SearchOptions(top_k=1))
        client = ChatClient.builder(model).default_advisors(advisor).build()

        client.prompt("What is the capital of France?").call()
        system = model.last_prompt.messages[0].content
        assert "CONTEXT:\nParis is the capital of France.\n" in system
        assert "Berlin" not in system
