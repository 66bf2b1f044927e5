"""User-facing text for the stock assistant.

Every function here is pure: the same products, page size and flags always
render the same text.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Sequence

from .models import Product

SHOW_ALL_HINT = "todos"

CANCEL_ACK = "Ok, finalizei a busca. Diga o que gostaria de pesquisar agora."
BACK_EMPTY = "Não há histórico de busca para voltar. Por favor, faça uma busca primeiro."
CONFIRM_DECLINED = "Ok, busca cancelada. Posso ajudar com mais alguma coisa?"
HELP_PROMPT = (
    "Acho que meu cérebro de bot deu um nó agora 😂\n\n"
    "Repete pra mim o que você precisa que eu vou atrás rapidinho!"
)
CLASSIFIER_APOLOGY = "Desculpe, não consegui entender sua intenção no momento. Poderia repetir?"
CONFIGURATION_MESSAGE = (
    "O assistente ainda não está configurado para responder. Avise o responsável pelo atendimento."
)
PIPELINE_APOLOGY = "Ops, tive um probleminha para te responder. Tente novamente mais tarde!"
GREETING_REPLY = (
    "Olá! Em que posso te ajudar hoje? 😉\n\n"
    "Você pode pesquisar por produtos e eu mostrarei o estoque e o valor de cada item. "
    "Se houver muitos itens, pedirei para você ser mais específico(a) para refinar a busca.\n\n"
    "Para sair ou começar uma nova busca, é só digitar 'cancelar'."
)
UNKNOWN_STOCK_TEXT = "Não disponível (entre em contato para mais detalhes)"


def format_price(price: Decimal) -> str:
    return "R$ " + f"{price:.2f}".replace(".", ",")


def format_stock(stock: Optional[Decimal]) -> str:
    if stock is None:
        return UNKNOWN_STOCK_TEXT
    # Tiny reports balances like "12.0000"; show whole units without the zeros.
    if stock == stock.to_integral_value():
        return str(int(stock))
    return f"{stock.normalize()}"


def format_product(product: Product) -> str:
    """Render one product as a three-line block."""
    return (
        f"* {product.name} (ID: {product.id})\n"
        f"  Preço: {format_price(product.price)}\n"
        f"  Estoque: {format_stock(product.stock)}"
    )


def search_footer(has_history: bool) -> str:
    """Purpose: List the control commands valid while a result set is active.
    Inputs/Outputs: Input is whether 'voltar' has something to restore; output is text.
    Side Effects / State: None.
    Dependencies: None.
    Failure Modes: None.
    If Removed: Users are not told how to refine, go back, or leave search mode.
    Testing Notes: 'voltar' is only offered when has_history is True.
    """
    parts = ["Para refinar, me diga mais um termo."]
    if has_history:
        parts.append("Para voltar à lista anterior, digite 'voltar'.")
    parts.append(f"Para ver a lista completa, digite '{SHOW_ALL_HINT}'.")
    parts.append("Para sair, digite 'cancelar'.")
    return " ".join(parts)


def render_page(products: Sequence[Product], page_size: int) -> str:
    """Purpose: Render the first page of products plus a hidden-items trailer.
    Inputs/Outputs: Inputs are the ordered products and page size; output is text.
    Side Effects / State: None.
    Dependencies: format_product.
    Failure Modes: page_size below 1 is treated as 1.
    If Removed: Refinement replies cannot show a bounded page.
    Testing Notes: 5 products, page 1 -> one block and "...e mais 4 resultados".
    """
    size = max(1, page_size)
    blocks: List[str] = [format_product(product) for product in products[:size]]
    text = "\n\n".join(blocks)
    hidden = len(products) - size
    if hidden > 0:
        text += (
            f"\n\n...e mais {hidden} resultados. "
            f"Para ver a lista completa, digite '{SHOW_ALL_HINT}'."
        )
    return text


def render_refinement(phrase: str, products: Sequence[Product], page_size: int, has_history: bool) -> str:
    header = f"✅ Busquei por \"{phrase}\" e encontrei {len(products)} produto(s):"
    return f"{header}\n\n{render_page(products, page_size)}\n\n{search_footer(has_history)}"


def render_full_list(products: Sequence[Product], has_history: bool) -> str:
    header = f"🔎 Aqui está a lista completa dos {len(products)} produtos encontrados:"
    body = "\n\n".join(format_product(product) for product in products)
    return f"{header}\n\n{body}\n\n{search_footer(has_history)}"


def render_first(products: Sequence[Product], count: int, has_history: bool) -> str:
    shown = min(count, len(products))
    header = f"✅ Certo! Mostrando os primeiros {shown} de {len(products)} produtos:"
    return f"{header}\n\n{render_page(products, shown)}\n\n{search_footer(has_history)}"


def render_search_results(term: str, products: Sequence[Product]) -> str:
    """Render a search that fits within the display threshold."""
    header = f"🔎 Encontrei os seguintes produtos para \"{term}\":"
    body = "\n\n".join(format_product(product) for product in products)
    return f"{header}\n\n{body}\n\nPara refinar, me diga mais um termo. Para sair, digite 'cancelar'."


def narrow_prompt(term: str, count: int) -> str:
    return (
        f"Achei {count} modelos de {term}.\n"
        f"Me diga qual tipo você está buscando (por exemplo, medida ou material) "
        f"ou digite '{SHOW_ALL_HINT}' para ver a lista completa."
    )


def confirm_prompt(term: str) -> str:
    return (
        f"Claro que sim! 😄 Está querendo saber quantas {term} temos por aqui, não é?\n"
        "Responda 'sim' para buscar ou 'não' para cancelar."
    )


def no_match(phrase: str) -> str:
    return (
        f"Não encontrei nenhum produto que corresponda a \"{phrase}\" na sua busca. "
        "Tente outro termo, digite 'voltar' para reverter ou 'cancelar' para sair."
    )


def back_restored(count: int) -> str:
    return (
        f"✅ Voltei para a lista anterior com {count} produtos.\n\n"
        "Para refinar, me diga mais um termo. Para sair, digite 'cancelar'."
    )
