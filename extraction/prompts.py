"""
Prompts for the pre-hearing analysis (prepauta) of labour lawsuits.

The model receives the initial filing, any amendments and every response,
and must answer with a single JSON object shaped like RESPONSE_SHAPE. The
keys match the camelCase aliases of models.analysis.AnalysisResult.
"""

from __future__ import annotations

import json
from typing import Any

SYSTEM_PROMPT = '''Você é um assistente jurídico especializado em Direito do Trabalho brasileiro.
Sua função é analisar as peças de um processo trabalhista (petição inicial, emendas e contestações) e extrair informações estruturadas para a preparação da audiência (prepauta).

Seja preciso, objetivo e imparcial: extraia fielmente o que consta dos documentos, sem julgar o mérito.

REGRAS:
1. Extraia apenas informações explícitas nos documentos
2. Havendo divergência entre a inicial (ou emendas) e as contestações, registre a controvérsia
3. Use linguagem técnica jurídica
4. Aponte o que precisa ser esclarecido em audiência
5. Destaque alertas relevantes (prazos, nulidades, documentos faltantes)
6. Emendas modificam ou complementam a petição inicial
7. Havendo várias contestações (vários réus), identifique a defesa de cada um'''

_ARGUMENTS = "string ou null"
_PROOFS = {
    "testemunhal": "true/false",
    "documental": "true/false",
    "pericial": "true/false",
    "depoimentoPessoal": "true/false",
    "outras": ["outras provas"],
    "especificacoes": _ARGUMENTS,
}
_CONTRACT = {
    "dataAdmissao": _ARGUMENTS,
    "dataDemissao": _ARGUMENTS,
    "funcao": _ARGUMENTS,
    "ultimoSalario": "number ou null",
    "tipoContrato": _ARGUMENTS,
    "motivoRescisao": _ARGUMENTS,
    "jornadaAlegada": _ARGUMENTS,
}
_CLAIM = {
    "numero": 1,
    "tema": "string (ex: HORAS EXTRAS, ADICIONAL NOTURNO)",
    "descricao": "descrição detalhada do pedido conforme a petição",
    "tipoPedido": "principal | subsidiario | alternativo | sucessivo",
    "pedidoPrincipalNumero": "number ou null (pedido principal a que este se vincula)",
    "condicao": "string ou null (condição de aplicação do pedido)",
    "periodo": _ARGUMENTS,
    "valor": "number ou null",
    "fatosReclamante": "todos os fatos, valores, horários, datas e fundamentos do reclamante, sem resumir",
    "defesaReclamada": "todos os argumentos da defesa, sem resumir; sem contestação: 'Não houve contestação (Ausência de manifestação)'",
    "teseJuridica": "fundamento jurídico principal",
    "controversia": "true/false",
    "confissaoFicta": "string ou null (fato não impugnado especificamente)",
    "pontosEsclarecer": ["pontos a esclarecer em audiência"],
}

RESPONSE_SHAPE: dict[str, Any] = {
    "identificacao": {
        "numeroProcesso": _ARGUMENTS,
        "reclamantes": ["nomes"],
        "reclamadas": ["nomes"],
        "temEntePublico": "true/false",
        "rito": "ordinario | sumarissimo | sumario | null",
        "vara": _ARGUMENTS,
        "dataAjuizamento": _ARGUMENTS,
    },
    "contrato": {
        "dadosInicial": _CONTRACT,
        "dadosContestacao": _CONTRACT,
        "controversias": ["controvérsias sobre o contrato"],
    },
    "tutelasProvisoras": [
        {"tipo": "Tutela de Urgência | Tutela de Evidência", "pedido": "string",
         "fundamentacao": "string", "urgencia": _ARGUMENTS}
    ],
    "preliminares": [
        {"tipo": "string (ex: INÉPCIA, ILEGITIMIDADE)", "descricao": "string",
         "alegadaPor": "reclamante | reclamada", "fundamentacao": _ARGUMENTS}
    ],
    "prejudiciais": {
        "prescricao": {"tipo": "quinquenal | bienal | parcial", "dataBase": _ARGUMENTS,
                       "fundamentacao": "string"},
        "decadencia": {"tipo": "string", "prazo": "string", "fundamentacao": "string"},
    },
    "pedidos": [_CLAIM],
    "reconvencao": {
        "existe": "true/false",
        "pedidos": ["mesmo formato de pedidos"],
        "fundamentacao": _ARGUMENTS,
    },
    "defesasAutonomas": [
        {"tipo": "string (ex: JUSTA CAUSA, COMPENSAÇÃO)", "descricao": "string",
         "fundamentacao": "string"}
    ],
    "impugnacoes": {
        "documentos": [{"documento": "string", "motivo": "string", "manifestacao": _ARGUMENTS}],
        "documentosNaoImpugnados": ["documentos não impugnados"],
        "calculos": _ARGUMENTS,
    },
    "provas": {"reclamante": _PROOFS, "reclamada": _PROOFS},
    "valorCausa": {
        "valorTotal": "number",
        "somaPedidos": "number",
        "inconsistencia": "true/false",
        "detalhes": _ARGUMENTS,
    },
    "alertas": [
        {"tipo": "string (ex: PRAZO, NULIDADE, DOCUMENTO)", "descricao": "string",
         "severidade": "alta | media | baixa", "recomendacao": _ARGUMENTS}
    ],
}

USER_PROMPT_TEMPLATE = '''Analise os documentos abaixo e retorne um JSON estruturado com a análise completa para prepauta.

DOCUMENTOS:

=== PETIÇÃO INICIAL ===
{peticao}

=== EMENDAS À PETIÇÃO INICIAL ===
{emendas}

=== CONTESTAÇÕES ===
{contestacoes}

Retorne APENAS um JSON válido no formato abaixo, sem texto antes ou depois:

{schema}

INSTRUÇÕES ADICIONAIS:
1. Sem contestação, marque todos os pedidos como controversos por ausência de manifestação
2. Aponte confissão ficta quando a reclamada não impugnar especificamente um fato
3. Em "fatosReclamante" e "defesaReclamada" inclua todos os detalhes: valores, horários, datas, teses numeradas, cláusulas de normas coletivas e jurisprudência citada. NÃO RESUMA
4. Alertas devem cobrir prazos próximos, possíveis nulidades e documentos faltantes
5. Se o valor da causa não corresponder à soma dos pedidos, marque inconsistência
6. Emendas podem acrescentar pedidos, alterar valores ou corrigir a inicial
7. Com várias contestações, consolide as defesas indicando qual réu apresentou cada uma
8. "temEntePublico" é true se alguma reclamada integrar a administração pública direta ou indireta
9. Identifique pedidos subsidiários, alternativos e sucessivos, indicando o pedido principal e a condição
10. Extraia todos os pedidos de tutela provisória (urgência, art. 300 CPC; evidência, art. 311 CPC)
11. Havendo pedidos do réu contra o autor, preencha "reconvencao" com "existe": true'''

NO_FILING = "Não fornecida"
NO_AMENDMENTS = "Não há emendas à petição inicial."
NO_RESPONSES = "Não há contestação nos autos."


def _numbered_section(texts: list[str], title: str, empty: str) -> str:
    if not texts:
        return empty
    return "\n\n".join(f"--- {title} {i} ---\n{text}" for i, text in enumerate(texts, 1))


def build_analysis_prompt(
    peticao: str,
    emendas: list[str] | None = None,
    contestacoes: list[str] | None = None,
) -> str:
    """
    Build the user prompt for one lawsuit.

    Args:
        peticao: Text of the initial filing.
        emendas: Texts of amendments to the filing, in order.
        contestacoes: Texts of the responses, in order.

    Returns:
        Prompt with the three document sections and the expected JSON shape.
    """
    return USER_PROMPT_TEMPLATE.format(
        peticao=peticao or NO_FILING,
        emendas=_numbered_section(emendas or [], "Emenda", NO_AMENDMENTS),
        contestacoes=_numbered_section(contestacoes or [], "Contestação", NO_RESPONSES),
        schema=json.dumps(RESPONSE_SHAPE, ensure_ascii=False, indent=2),
    )
