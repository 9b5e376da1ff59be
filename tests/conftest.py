"""Shared fakes for the constitution indexer tests."""

from typing import Optional

import pytest

from constitution_indexer.indexing.engine import (
    CreateResponse,
    DocumentResult,
    EngineError,
    EngineErrorKind,
    IndexEngine,
    RetrieveResponse,
    UpsertOptions,
    UpsertResponse,
)
from constitution_indexer.indexing.schema import IndexSchema
from constitution_indexer.processing.elements import ElementKind, IndexedDocument


class FakeEngine(IndexEngine):
    """In-memory IndexEngine that records every call."""

    def __init__(self) -> None:
        self.schemas: dict[str, IndexSchema] = {}
        self.stored: dict[str, dict] = {}
        self.retrieve_calls: list[str] = []
        self.create_calls: list[IndexSchema] = []
        self.upsert_calls: list[tuple[str, list[str], UpsertOptions]] = []
        self.retrieve_error: Optional[EngineError] = None
        self.create_error: Optional[EngineError] = None
        self.create_error_registers = False  # simulate a concurrent creator
        self.failing_batches: set[int] = set()  # 1-based upsert call numbers
        self.rejected_ids: set[str] = set()

    def retrieve_index(self, name: str) -> RetrieveResponse:
        self.retrieve_calls.append(name)
        if self.retrieve_error is not None:
            return RetrieveResponse(error=self.retrieve_error)
        if name in self.schemas:
            return RetrieveResponse(schema=self.schemas[name])
        return RetrieveResponse(error=EngineError(EngineErrorKind.NOT_FOUND, f"{name} not found"))

    def create_index(self, schema: IndexSchema) -> CreateResponse:
        self.create_calls.append(schema)
        if self.create_error is not None:
            if self.create_error_registers:
                self.schemas[schema.name] = schema
            return CreateResponse(error=self.create_error)
        self.schemas[schema.name] = schema
        return CreateResponse(schema=schema)

    def upsert_batch(self, name: str, records: list[dict], options: UpsertOptions) -> UpsertResponse:
        self.upsert_calls.append((name, [r["id"] for r in records], options))
        if len(self.upsert_calls) in self.failing_batches:
            return UpsertResponse(error=EngineError(EngineErrorKind.TRANSPORT, "connection reset"))
        results = []
        for record in records:
            if record["id"] in self.rejected_ids:
                results.append(DocumentResult(id=record["id"], success=False, error="Field 'text': bad value"))
            else:
                self.stored[record["id"]] = record
                results.append(DocumentResult(id=record["id"], success=True))
        return UpsertResponse(results=results)


@pytest.fixture
def fake_engine() -> FakeEngine:
    return FakeEngine()


def make_documents(count: int) -> list[IndexedDocument]:
    return [
        IndexedDocument(
            id=f"doc-{i}",
            kind=ElementKind.ARTICLE,
            number=f"Art. {i}",
            full_reference=f"TÍTULO I, Art. {i}",
            text=f"Texto do artigo {i}",
            hierarchical_text_context=f"TÍTULO I | Texto do artigo {i}",
            source_url="https://example.test/constituicao.htm",
            last_indexed_at=1700000000,
            position=i,
        )
        for i in range(1, count + 1)
    ]


@pytest.fixture
def documents_factory():
    return make_documents


SAMPLE_HTML = """<html><head><title>Constituição</title></head><body>
<table><tr><td><p><a href="http://www.planalto.gov.br/ccivil_03/">Presidência da República</a></p></td></tr>
<tr><td><p><img src="../Imagens/Brastra.gif"><img src="brasao.png"></p></td></tr></table>
<p align="center"><b>CONSTITUIÇÃO DA REPÚBLICA FEDERATIVA DO BRASIL DE 1988</b></p>
<p align="center"><b>PREÂMBULO</b></p>
<p>Nós, representantes do povo brasileiro, reunidos em Assembléia Nacional Constituinte, promulgamos a seguinte CONSTITUIÇÃO DA REPÚBLICA FEDERATIVA DO BRASIL.</p>
<p align="center"><b>TÍTULO I</b></p>
<p align="center"><b>Dos Princípios Fundamentais</b></p>
<p>Art. 1º A República Federativa do Brasil, formada pela união indissolúvel dos Estados e Municípios e do Distrito Federal, constitui-se em Estado Democrático de Direito e tem como fundamentos:</p>
<p>I - a soberania;</p>
<p>II - a cidadania;</p>
<p>Parágrafo único. Todo o poder emana do povo, que o exerce por meio de representantes eleitos.</p>
<p align="center"><b>TÍTULO II</b></p>
<p align="center"><b>CAPÍTULO I</b></p>
<p>Art. 5º</p>
<p>Todos são iguais perante a lei, sem distinção de qualquer natureza.</p>
<p>LXVIII - conceder-se-á habeas corpus sempre que alguém sofrer ou se achar ameaçado de sofrer violência;</p>
<p>a) em caso de guerra declarada;</p>
<p>§ 1º As normas definidoras dos direitos e garantias fundamentais têm aplicação imediata.</p>
<p align="center">ULYSSES GUIMARÃES</p>
<p align="center">Brasília, 5 de outubro de 1988.</p>
<p align="center"><b>ATO DAS DISPOSIÇÕES CONSTITUCIONAIS TRANSITÓRIAS</b></p>
<p>Art. 1º O Presidente da República, o Presidente do Supremo Tribunal Federal e os membros do Congresso Nacional prestarão o compromisso.</p>
</body></html>
"""


@pytest.fixture
def sample_html() -> str:
    return SAMPLE_HTML
