from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Plataforma RFQ",
    "rfq": "Cotacao",
    "quote": "Proposta",
    "award": "Decisao",
    "supplier": "Fornecedor",
    "buyer": "Comprador",
    "workspace": "Workspace",
}


STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "cotacao": [
        {
            "key": "draft",
            "label": "Rascunho",
            "description": "Cotacao em preparacao, ainda invisivel para fornecedores.",
        },
        {
            "key": "published",
            "label": "Publicada",
            "description": "Cotacao aberta para recebimento de propostas ate o prazo.",
        },
        {
            "key": "closed",
            "label": "Fechada",
            "description": "Cotacao encerrada para novas propostas.",
        },
        {
            "key": "awarded",
            "label": "Adjudicada",
            "description": "Fornecedor vencedor definido.",
        },
        {
            "key": "cancelled",
            "label": "Cancelada",
            "description": "Cotacao encerrada sem decisao.",
        },
        {
            "key": "expired",
            "label": "Expirada",
            "description": "Prazo encerrado sem decisao.",
        },
    ],
    "proposta": [
        {"key": "pending", "label": "Pendente", "description": "Proposta iniciada e nao enviada."},
        {"key": "submitted", "label": "Enviada", "description": "Proposta recebida e elegivel para avaliacao."},
        {"key": "revised", "label": "Revisada", "description": "Proposta que substitui uma versao anterior."},
        {"key": "accepted", "label": "Aceita", "description": "Proposta vencedora da cotacao."},
        {"key": "rejected", "label": "Recusada", "description": "Proposta nao selecionada na decisao."},
        {"key": "withdrawn", "label": "Retirada", "description": "Proposta retirada ou substituida."},
    ],
}


ACTIVITY_LABELS: Dict[str, str] = {
    "rfq_created": "Cotacao criada",
    "rfq_updated": "Cotacao atualizada",
    "rfq_published": "Cotacao publicada",
    "quote_submitted": "Proposta enviada",
    "quote_revised": "Proposta revisada",
    "quote_withdrawn": "Proposta retirada",
    "rfq_awarded": "Cotacao adjudicada",
    "rfq_cancelled": "Cotacao cancelada",
    "deadline_extended": "Prazo prorrogado",
    "rfq_expired": "Cotacao expirada",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "error": {
        "action_invalid": "Acao invalida para este registro.",
        "auth_required": "Autenticacao necessaria.",
        "permission_denied": "Voce nao tem permissao para esta acao.",
        "not_found": "Registro nao encontrado.",
        "rfq_not_found": "Cotacao nao encontrada.",
        "quote_not_found": "Proposta nao encontrada para este fornecedor.",
        "supplier_required": "Informe o fornecedor.",
        "validation_error": "Dados invalidos.",
        "payload_invalid": "Corpo da requisicao invalido.",
        "field_required": "Campo obrigatorio nao informado.",
        "field_too_long": "Campo excede o tamanho permitido.",
        "date_invalid": "Data invalida. Use o formato ISO 8601.",
        "number_invalid": "Valor numerico invalido.",
        "items_required": "Informe ao menos um item.",
        "item_invalid": "Item da cotacao invalido.",
        "invalid_line_item": "Item da proposta invalido para esta cotacao.",
        "weights_invalid": "Cada peso dos criterios deve estar entre 0 e 100.",
        "weights_sum_invalid": "Os pesos dos criterios devem somar exatamente 100.",
        "due_date_before_issue": "O prazo deve ser posterior a data de emissao.",
        "valid_until_before_due": "A validade deve ser igual ou posterior ao prazo.",
        "due_date_in_past": "O prazo da cotacao ja passou.",
        "visibility_invalid": "Visibilidade invalida.",
        "payment_method_invalid": "Condicao de pagamento invalida.",
        "currency_invalid": "Moeda invalida.",
        "status_filter_invalid": "Filtro de status invalido.",
        "signals_invalid": "Indicadores do fornecedor invalidos.",
        "reason_required": "Informe o motivo.",
        "invalid_state": "Acao nao permitida para o status atual.",
        "rfq_not_draft": "Somente cotacoes em rascunho podem ser publicadas.",
        "rfq_not_published": "A cotacao nao esta publicada.",
        "rfq_terminal": "A cotacao ja foi encerrada.",
        "rfq_not_editable": "A cotacao nao pode mais ser editada.",
        "field_locked": "Campo nao pode ser alterado apos a publicacao.",
        "deadline_not_forward": "O novo prazo deve ser posterior ao prazo atual.",
        "quote_not_awardable": "A proposta nao esta ativa para adjudicacao.",
        "quote_not_open": "A proposta nao esta ativa.",
        "eligibility_denied": "Fornecedor nao pode enviar proposta para esta cotacao.",
        "rfq_not_active": "A cotacao nao esta aberta para propostas.",
        "visibility_denied": "Fornecedor nao tem acesso a esta cotacao.",
        "supplier_excluded": "Fornecedor excluido desta cotacao.",
        "duplicate_quote": "Fornecedor ja possui uma proposta ativa nesta cotacao.",
        "concurrency_conflict": "A cotacao foi alterada em paralelo. Tente novamente em instantes.",
        "rate_limit_exceeded": "Muitas requisicoes. Tente novamente em instantes.",
        "unexpected_error": "Nao foi possivel concluir a operacao. Tente novamente em instantes.",
    },
    "success": {
        "rfq_created": "Cotacao criada.",
        "rfq_updated": "Cotacao atualizada.",
        "rfq_published": "Cotacao publicada.",
        "quote_submitted": "Proposta enviada.",
        "quote_revised": "Proposta revisada.",
        "quote_withdrawn": "Proposta retirada.",
        "quotes_evaluated": "Propostas avaliadas.",
        "rfq_awarded": "Cotacao adjudicada.",
        "rfq_cancelled": "Cotacao cancelada.",
        "deadline_extended": "Prazo prorrogado.",
        "signals_updated": "Indicadores do fornecedor atualizados.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_label(group: str, key: str | None) -> str:
    for item in STATUS_GROUPS.get(group, []):
        if item["key"] == key:
            return item["label"]
    return str(key or "")


def activity_label(action: str, default: str | None = None) -> str:
    if action in ACTIVITY_LABELS:
        return ACTIVITY_LABELS[action]
    return default if default is not None else action


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None) -> str:
    return get_message("error", key, default)


def success_message(key: str, default: str | None = None) -> str:
    return get_message("success", key, default)
