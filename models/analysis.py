"""
Typed result of one pre-hearing analysis (análise de prepauta).

The model is asked to return camelCase JSON; every model here accepts those
keys through aliases and exposes snake_case attributes. Only
`identificacao` is required. Collections are tuples that default to empty,
so a validated result never carries missing or mutable lists.
"""

from __future__ import annotations

import json
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class AnalysisModel(BaseModel):
    """Base for all analysis models: camelCase aliases, immutable."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_dict(self) -> dict[str, Any]:
        """Serialize using the camelCase keys the model produced."""
        return self.model_dump(mode="json", by_alias=True)


def ensure_string(value: Any) -> str:
    """Coerce any JSON value to a string; objects and arrays become JSON text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value)


# =============================================================================
# Identification and contract
# =============================================================================


class Identificacao(AnalysisModel):
    """Parties and court identification."""

    numero_processo: str | None = None
    reclamantes: tuple[str, ...] = ()
    reclamadas: tuple[str, ...] = ()
    tem_ente_publico: bool | None = None
    rito: Literal["ordinario", "sumarissimo", "sumario"] | None = None
    vara: str | None = None
    data_ajuizamento: str | None = None


class ContratoData(AnalysisModel):
    data_admissao: str | None = None
    data_demissao: str | None = None
    funcao: str | None = None
    ultimo_salario: float | None = None
    tipo_contrato: str | None = None
    motivo_rescisao: str | None = None
    jornada_alegada: str | None = None


class Contrato(AnalysisModel):
    """Employment contract as told by the filing and by the response."""

    dados_inicial: ContratoData = Field(default_factory=ContratoData)
    dados_contestacao: ContratoData | None = None
    controversias: tuple[str, ...] = ()


# =============================================================================
# Procedural matters
# =============================================================================


class TutelaProvisoria(AnalysisModel):
    tipo: str = ""
    pedido: str = ""
    fundamentacao: str = ""
    urgencia: str | None = None


class Preliminar(AnalysisModel):
    tipo: str = ""
    descricao: str = ""
    alegada_por: Literal["reclamante", "reclamada"] | None = None
    fundamentacao: str | None = None


class Prescricao(AnalysisModel):
    tipo: Literal["quinquenal", "bienal", "parcial"] | None = None
    data_base: str | None = None
    fundamentacao: str = ""


class Decadencia(AnalysisModel):
    tipo: str = ""
    prazo: str = ""
    fundamentacao: str = ""


class Prejudiciais(AnalysisModel):
    prescricao: Prescricao | None = None
    decadencia: Decadencia | None = None


# =============================================================================
# Claims
# =============================================================================

TipoPedido = Literal["principal", "subsidiario", "alternativo", "sucessivo"]


class Pedido(AnalysisModel):
    """One itemised claim with both sides' arguments."""

    numero: int | None = None
    tema: str = ""
    descricao: str = ""
    periodo: str | None = None
    valor: float | None = None
    fatos_reclamante: str = ""
    defesa_reclamada: str = ""
    tese_juridica: str = ""
    controversia: bool = True
    confissao_ficta: str | None = None
    pontos_esclarecer: tuple[str, ...] = ()
    tipo_pedido: TipoPedido | None = None
    pedido_principal_numero: int | None = None
    condicao: str | None = None

    @field_validator(
        "fatos_reclamante", "defesa_reclamada", "tese_juridica", mode="before"
    )
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return ensure_string(value)

    @field_validator("confissao_ficta", mode="before")
    @classmethod
    def _coerce_optional_text(cls, value: Any) -> str | None:
        return ensure_string(value) if value else None


class Reconvencao(AnalysisModel):
    """Counterclaim raised in the response."""

    existe: bool = False
    pedidos: tuple[Pedido, ...] = ()
    fundamentacao: str | None = None


class DefesaAutonoma(AnalysisModel):
    tipo: str = ""
    descricao: str = ""
    fundamentacao: str = ""


class ImpugnacaoDocumento(AnalysisModel):
    documento: str = ""
    motivo: str = ""
    manifestacao: str | None = None


class Impugnacoes(AnalysisModel):
    documentos: tuple[ImpugnacaoDocumento, ...] = ()
    documentos_nao_impugnados: tuple[str, ...] = ()
    calculos: str | None = None


class ProvasRequeridas(AnalysisModel):
    testemunhal: bool = False
    documental: bool = False
    pericial: bool = False
    depoimento_pessoal: bool = False
    outras: tuple[str, ...] = ()
    especificacoes: str | None = None


class Provas(AnalysisModel):
    reclamante: ProvasRequeridas = Field(default_factory=ProvasRequeridas)
    reclamada: ProvasRequeridas = Field(default_factory=ProvasRequeridas)


class ValorCausa(AnalysisModel):
    valor_total: float = 0.0
    soma_pedidos: float = 0.0
    inconsistencia: bool = False
    detalhes: str | None = None


class Alerta(AnalysisModel):
    tipo: str = ""
    descricao: str = ""
    severidade: Literal["alta", "media", "baixa"] = "media"
    recomendacao: str | None = None

    @field_validator("severidade", mode="before")
    @classmethod
    def _default_severity(cls, value: Any) -> Any:
        return value if value is not None else "media"


class TabelaPedido(AnalysisModel):
    """Row of the synthetic comparison table."""

    numero: int | None = None
    tema: str = ""
    valor: float | None = None
    tese_autor: str = ""
    tese_re: str = ""
    controversia: bool = True
    confissao_ficta: str | None = None
    observacoes: str | None = None
    tipo_pedido: TipoPedido | None = None
    pedido_principal_numero: int | None = None
    condicao: str | None = None


NO_RESPONSE_DEFENCE = "Não houve contestação"


def build_summary_table(pedidos: tuple[Pedido, ...]) -> tuple[TabelaPedido, ...]:
    """Derive the comparison table from the claims so both views agree."""
    return tuple(
        TabelaPedido(
            numero=p.numero,
            tema=p.tema,
            valor=p.valor,
            tese_autor=p.fatos_reclamante,
            tese_re=p.defesa_reclamada or NO_RESPONSE_DEFENCE,
            controversia=p.controversia,
            confissao_ficta=p.confissao_ficta,
            observacoes=p.pontos_esclarecer[0] if p.pontos_esclarecer else None,
            tipo_pedido=p.tipo_pedido,
            pedido_principal_numero=p.pedido_principal_numero,
            condicao=p.condicao,
        )
        for p in pedidos
    )


# =============================================================================
# Result
# =============================================================================


class AnalysisResult(AnalysisModel):
    """
    Structured outcome of one successful analysis.

    Produced only by the result parser. `identificacao` is the single
    required field; every other section has an empty default.
    """

    identificacao: Identificacao
    contrato: Contrato = Field(default_factory=Contrato)
    tutelas_provisoras: tuple[TutelaProvisoria, ...] = ()
    preliminares: tuple[Preliminar, ...] = ()
    prejudiciais: Prejudiciais = Field(default_factory=Prejudiciais)
    pedidos: tuple[Pedido, ...] = ()
    reconvencao: Reconvencao | None = None
    defesas_autonomas: tuple[DefesaAutonoma, ...] = ()
    impugnacoes: Impugnacoes = Field(default_factory=Impugnacoes)
    provas: Provas = Field(default_factory=Provas)
    valor_causa: ValorCausa = Field(default_factory=ValorCausa)
    alertas: tuple[Alerta, ...] = ()
    tabela_sintetica: tuple[TabelaPedido, ...] = ()

    def with_summary_table(self) -> AnalysisResult:
        """Return a copy whose comparison table is rebuilt from `pedidos`."""
        return self.model_copy(
            update={"tabela_sintetica": build_summary_table(self.pedidos)}
        )

    @property
    def first_claimant(self) -> str | None:
        return self.identificacao.reclamantes[0] if self.identificacao.reclamantes else None

    @property
    def high_severity_alerts(self) -> tuple[Alerta, ...]:
        return tuple(a for a in self.alertas if a.severidade == "alta")
