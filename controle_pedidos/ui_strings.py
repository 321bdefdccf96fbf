from __future__ import annotations

from typing import Dict, List


FRIENDLY_TERMS: Dict[str, str] = {
    "app_name": "Controle de Pedidos",
    "period": "Período",
    "order": "Pedido",
    "thc": "THC / 2000",
    "litigation": "Judicialização",
    "shipment": "Controle de envio",
    "seller": "Vendedor",
    "client": "Cliente",
    "quote": "Orçamento",
    "user": "Usuário",
    "workspace": "Área de trabalho",
}


# Labels are the values the operation has always typed and exported; keep them verbatim.
STATUS_GROUPS: Dict[str, List[Dict[str, str]]] = {
    "order": [
        {
            "key": "separating",
            "label": "Em Separação",
            "description": "Pedido reservado e em separação no estoque.",
        },
        {
            "key": "in_transit",
            "label": "Em Trânsito",
            "description": "Pedido despachado e a caminho.",
        },
        {
            "key": "anvisa",
            "label": "Anvisa",
            "description": "Retido para liberação regulatória.",
        },
        {
            "key": "anvisa_problem",
            "label": "Problema Anvisa",
            "description": "Liberação regulatória com pendência.",
        },
        {
            "key": "delayed",
            "label": "Atraso",
            "description": "Entrega fora do prazo esperado.",
        },
        {
            "key": "document_rejected",
            "label": "Doc. Recusado",
            "description": "Documentação recusada, requer reenvio.",
        },
        {
            "key": "thc_2000",
            "label": "THC / 2000",
            "description": "Categoria especial com prazo próprio de envio.",
        },
    ],
    "thc": [
        {
            "key": "pending_shipment",
            "label": "Pendente de Envio",
            "description": "Aguardando envio dentro do prazo THC.",
        },
        {
            "key": "shipped",
            "label": "Enviado",
            "description": "Envio THC concluído.",
        },
    ],
    "litigation": [
        {"key": "budgeted", "label": "Orçado", "description": "Processo orçado."},
        {"key": "shipped", "label": "Embarcado", "description": "Produto embarcado."},
        {"key": "delivered", "label": "Entregue", "description": "Produto entregue."},
    ],
    "shipment": [
        {"key": "pending", "label": "Pendente", "description": "Envio ainda não despachado."},
        {"key": "shipped", "label": "Enviado", "description": "Envio despachado."},
        {"key": "in_transit", "label": "Em Trânsito", "description": "Envio a caminho."},
        {"key": "anvisa", "label": "Anvisa", "description": "Retido para liberação regulatória."},
        {"key": "problem", "label": "Problema", "description": "Envio com problema."},
    ],
    "quote": [
        {"key": "draft", "label": "Rascunho", "description": "Orçamento em elaboração."},
        {"key": "sent", "label": "Enviado", "description": "Orçamento enviado ao cliente."},
        {"key": "approved", "label": "Aprovado", "description": "Orçamento aprovado pelo cliente."},
        {"key": "rejected", "label": "Recusado", "description": "Orçamento recusado pelo cliente."},
    ],
    "priority": [
        {"key": "low", "label": "Baixa", "description": "Pode esperar."},
        {"key": "medium", "label": "Média", "description": "Prioridade normal."},
        {"key": "high", "label": "Alta", "description": "Resolver logo."},
        {"key": "urgent", "label": "Urgente", "description": "Resolver agora."},
    ],
}


ROLE_LABELS: Dict[str, str] = {
    "admin": "Administrador",
    "collaborator": "Colaborador",
}


UI_TEXTS: Dict[str, str] = {
    "client_error.recoverable": "Ocorreu uma falha temporária na tela. Recarregando...",
    "client_error.fatal": "Algo deu errado. Limpe os dados locais e recarregue a página.",
    "client_error.action.reload": "Recarregar",
    "client_error.action.clear_local_state": "Limpar dados e recarregar",
    "import.skipped_existing_order": "Pedido {number} já existe - ignorado",
    "import.skipped_existing_seller": "\"{name}\" já existe - ignorado",
}


MESSAGES: Dict[str, Dict[str, str]] = {
    "success": {
        "period_created": "Período criado!",
        "order_reserved": "Pedido {number} reservado! Complete os dados.",
        "order_saved": "Pedido salvo!",
        "order_updated": "Pedido atualizado.",
        "edit_cancelled": "Edição cancelada.",
        "deleted": "Excluído",
        "orders_imported": "{count} pedido(s) importado(s) com sucesso!",
        "sellers_imported": "{count} vendedor(es) importado(s) com sucesso!",
        "seller_created": "Vendedor adicionado!",
        "seller_updated": "Vendedor atualizado!",
        "user_created": "Usuário criado!",
        "user_updated": "Usuário atualizado!",
        "client_created": "Cliente cadastrado!",
        "client_updated": "Cliente atualizado!",
        "quote_saved": "Orçamento salvo!",
        "quote_updated": "Orçamento atualizado!",
        "litigation_created": "Judicialização criada!",
        "litigation_updated": "Judicialização atualizada!",
        "shipment_created": "Envio registrado!",
        "shipment_updated": "Envio atualizado!",
        "logo_saved": "Logo salvo!",
        "logo_removed": "Logo removido.",
        "theme_saved": "Tema atualizado.",
        "logged_in": "Bem-vindo, {name}!",
    },
    "error": {
        "action_invalid": "Ação inválida para esta operação.",
        "admin_only": "Apenas administradores podem executar esta ação.",
        "auth_required": "Autenticação necessária.",
        "auth_invalid_credentials": "Email ou senha incorretos",
        "auth_missing_credentials": "Informe email e senha.",
        "cannot_toggle_self": "Não pode desativar você mesmo",
        "client_has_quotes": "Cliente possui orçamentos vinculados e não pode ser excluído.",
        "client_name_required": "Informe a razão social do cliente.",
        "client_not_found": "Cliente não encontrado.",
        "csv_empty": "Arquivo vazio ou sem dados",
        "csv_file_required": "Envie um arquivo CSV.",
        "csv_too_large": "Arquivo CSV excede o tamanho permitido.",
        "csv_seller_column_missing": "Coluna \"nome\" não encontrada no cabeçalho",
        "email_already_registered": "Email já cadastrado.",
        "field_permission_denied": "Sem permissão para editar este campo",
        "field_unknown": "Campo desconhecido: {field}",
        "finish_current_edit_first": "Finalize a edição do pedido atual primeiro",
        "lease_not_held": "Você não está editando este pedido.",
        "litigation_fields_required": "Preencha cliente e produto",
        "litigation_not_found": "Judicialização não encontrada.",
        "logo_invalid": "Imagem inválida. Envie um PNG ou JPEG.",
        "logo_too_large": "Imagem excede o tamanho permitido.",
        "no_changes": "Nenhuma alteração informada.",
        "note_not_found": "Post-it não encontrado.",
        "order_being_edited": "Pedido em edição por {holder}.",
        "order_incomplete": "Preencha pelo menos Cliente e Produto",
        "order_not_found": "Pedido não encontrado.",
        "order_number_exists": "Pedido {number} já existe neste período!",
        "order_number_required": "Digite o número do pedido para reservar",
        "order_number_taken": "Pedido {number} já foi reservado por outro usuário!",
        "period_name_required": "Informe o nome do período.",
        "period_not_found": "Período não encontrado.",
        "permission_denied": "Você não possui permissão para executar esta ação.",
        "priority_invalid": "Prioridade inválida.",
        "quote_client_required": "Selecione um cliente",
        "quote_item_description_required": "Preencha a descrição de todos os itens",
        "quote_items_required": "Adicione ao menos um item ao orçamento.",
        "quote_not_found": "Orçamento não encontrado.",
        "quote_number_exists": "Já existe um orçamento com este número.",
        "rate_limit_exceeded": "Muitas requisições. Tente novamente em instantes.",
        "role_invalid": "Tipo de usuário inválido.",
        "seller_exists": "Vendedor já cadastrado.",
        "seller_name_required": "Informe o nome do vendedor.",
        "seller_not_found": "Vendedor não encontrado.",
        "shipment_fields_required": "Preencha nome e produto",
        "shipment_not_found": "Envio não encontrado.",
        "status_invalid": "Status informado é inválido.",
        "task_list_not_found": "Lista de tarefas não encontrada.",
        "task_not_found": "Tarefa não encontrada.",
        "task_text_required": "Digite o texto da tarefa.",
        "theme_invalid": "Tema inválido.",
        "thc_status_invalid": "Status THC inválido.",
        "unexpected_error": "Não foi possível concluir a operação. Tente novamente em instantes.",
        "user_fields_required": "Preencha nome, email e senha.",
        "user_not_found": "Usuário não encontrado.",
        "validation_error": "Dados inválidos.",
    },
}


def status_keys_for_group(group: str) -> List[str]:
    return [item["key"] for item in STATUS_GROUPS.get(group, [])]


def status_labels_for_group(group: str) -> Dict[str, str]:
    return {item["key"]: item["label"] for item in STATUS_GROUPS.get(group, [])}


def get_ui_text(key: str, default: str | None = None) -> str:
    if key in UI_TEXTS:
        return UI_TEXTS[key]
    if default is not None:
        return default
    return key


def get_message(category: str, key: str, default: str | None = None) -> str:
    message = MESSAGES.get(category, {}).get(key)
    if message:
        return message
    if default is not None:
        return default
    return key


def error_message(key: str, default: str | None = None, **params: object) -> str:
    return _render(get_message("error", key, default), params)


def success_message(key: str, default: str | None = None, **params: object) -> str:
    return _render(get_message("success", key, default), params)


def _render(template: str, params: Dict[str, object]) -> str:
    if not params:
        return template
    try:
        return template.format(**params)
    except (KeyError, IndexError, ValueError):
        return template


def frontend_bundle() -> Dict[str, object]:
    return {
        "terms": FRIENDLY_TERMS,
        "status_groups": STATUS_GROUPS,
        "roles": ROLE_LABELS,
        "messages": MESSAGES,
        "texts": UI_TEXTS,
    }
