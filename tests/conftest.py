"""Shared fixtures for analyzer tests."""

import json
from pathlib import Path

import pytest

from models.batch import WorkItem

FILING_TEXT = "PETIÇÃO INICIAL. " + "O reclamante trabalhou como motorista e requer horas extras. " * 5
RESPONSE_TEXT = "CONTESTAÇÃO. " + "A reclamada nega a jornada alegada e junta cartões de ponto. " * 5


@pytest.fixture
def minimal_payload() -> dict:
    """Smallest payload that validates: only the required section."""
    return {
        "identificacao": {
            "numeroProcesso": "0000272-52.2025.5.08.0201",
            "reclamantes": ["João da Silva"],
            "reclamadas": ["Transportes ABC Ltda"],
        }
    }


@pytest.fixture
def full_payload(minimal_payload: dict) -> dict:
    """Payload with claims, alerts and a stale comparison table."""
    return {
        **minimal_payload,
        "pedidos": [
            {
                "numero": 1,
                "tema": "HORAS EXTRAS",
                "descricao": "Horas extras além da 8ª diária",
                "valor": 15000.0,
                "fatosReclamante": "Jornada das 6h às 20h",
                "defesaReclamada": "Jornada registrada nos cartões",
                "teseJuridica": "Art. 59 CLT",
                "controversia": True,
                "pontosEsclarecer": ["Validade dos cartões de ponto"],
            },
            {
                "numero": 2,
                "tema": "DANO MORAL",
                "descricao": "Indenização por assédio",
                "fatosReclamante": "Humilhações pelo gerente",
                "defesaReclamada": "",
                "teseJuridica": "Art. 223-B CLT",
                "controversia": True,
            },
        ],
        "alertas": [
            {"tipo": "PRAZO", "descricao": "Prescrição bienal próxima", "severidade": "alta"},
        ],
        "tabelaSintetica": [{"numero": 99, "tema": "STALE"}],
    }


@pytest.fixture
def minimal_json(minimal_payload: dict) -> str:
    return json.dumps(minimal_payload, ensure_ascii=False)


@pytest.fixture
def make_item():
    """Factory for WorkItems built from a file name and in-memory text."""

    def _make(label: str, text: str | None = None) -> WorkItem:
        body = text if text is not None else FILING_TEXT
        return WorkItem.from_label(label, body.encode("utf-8"))

    return _make


@pytest.fixture
def document_dir(tmp_path: Path) -> Path:
    """Directory with a filing and a response for the same case."""
    (tmp_path / "[0000272-52.2025.5.08.0201] inicial.txt").write_text(FILING_TEXT, encoding="utf-8")
    (tmp_path / "[0000272-52.2025.5.08.0201] contestacao.txt").write_text(
        RESPONSE_TEXT, encoding="utf-8"
    )
    return tmp_path
