"""Tiny ERP (API v2) catalog adapter: product search plus per-item stock lookups."""

from __future__ import annotations

import asyncio
import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Protocol

import httpx

from .config import is_placeholder
from .errors import PartialDataError, UpstreamError
from .models import CatalogResult, Product

logger = logging.getLogger("stockbot.catalog")

DEFAULT_TINY_API_URL = "https://api.tiny.com.br/api2"
SEARCH_ENDPOINT = "produtos.pesquisa.php"
STOCK_ENDPOINT = "produto.obter.estoque.php"

TOKEN_MISSING_MESSAGE = "O token da API Tiny não está configurado."
SEARCH_FAILED_MESSAGE = "Ocorreu um erro ao buscar produtos. Tente novamente mais tarde."


def not_found_message(term: str) -> str:
    return f"Não encontrei nenhum produto para \"{term}\"."


class CatalogSearcher(Protocol):
    async def search_catalog(self, term: str) -> CatalogResult:
        ...


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value).strip())
    except InvalidOperation:
        return None


def _first_error(retorno: Dict[str, Any]) -> str:
    erros = retorno.get("erros") or []
    if not isinstance(erros, list):
        return str(erros)
    if erros and isinstance(erros[0], dict):
        return str(erros[0].get("erro", ""))
    if erros:
        return str(erros[0])
    return ""


def parse_search_products(payload: Dict[str, Any]) -> List[Product]:
    """Purpose: Convert a produtos.pesquisa response into Products without stock.
    Inputs/Outputs: Input is the decoded JSON payload; output is a list of Product.
    Side Effects / State: None.
    Dependencies: _to_decimal.
    Failure Modes: Raises UpstreamError when the payload has no 'retorno' object;
        entries without id or name are skipped; unparseable prices become 0.
    If Removed: search_catalog cannot read Tiny responses.
    Testing Notes: Feed a recorded payload and verify names, ids, and prices.
    """
    retorno = payload.get("retorno") if isinstance(payload, dict) else None
    if not isinstance(retorno, dict):
        raise UpstreamError("Tiny response without 'retorno'")
    products: List[Product] = []
    for entry in retorno.get("produtos") or []:
        data = entry.get("produto") if isinstance(entry, dict) else None
        if not isinstance(data, dict):
            continue
        product_id = str(data.get("id") or "").strip()
        name = str(data.get("nome") or "").strip()
        if not product_id or not name:
            continue
        products.append(
            Product(name=name, id=product_id, price=_to_decimal(data.get("preco")) or Decimal("0"))
        )
    return products


class TinyCatalogClient:
    """Async client for the Tiny ERP product search and stock endpoints."""

    def __init__(
        self,
        token: str,
        base_url: str = DEFAULT_TINY_API_URL,
        client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
        stock_concurrency: int = 5,
    ) -> None:
        """Purpose: Configure credentials, endpoint, and the shared HTTP client.
        Inputs/Outputs: Inputs are the API token, base url, optional httpx client,
            timeout, and the stock lookup concurrency bound; no return value.
        Side Effects / State: Creates an httpx.AsyncClient when none is given.
        Dependencies: httpx.
        Failure Modes: None at init; a missing token is reported per search.
        If Removed: The dialogue controller has no catalog to search.
        Testing Notes: Inject httpx.AsyncClient(transport=httpx.MockTransport(...)).
        """
        self._token = token.strip()
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_seconds)
        self._stock_concurrency = max(1, stock_concurrency)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def configured(self) -> bool:
        return not is_placeholder(self._token)

    async def _call(self, method: str, endpoint: str, params: Dict[str, str]) -> Dict[str, Any]:
        url = f"{self._base_url}/{endpoint}"
        if method == "GET":
            response = await self._client.get(url, params=params)
        else:
            response = await self._client.post(url, data=params)
        response.raise_for_status()
        data = response.json()
        if not isinstance(data, dict):
            raise UpstreamError(f"unexpected Tiny payload type {type(data).__name__}")
        return data

    async def search_catalog(self, term: str) -> CatalogResult:
        """Purpose: Search the catalog by free text and attach stock to each hit.
        Inputs/Outputs: Input is the search term; output is CatalogResult with products
            on success or a human-readable error otherwise.
        Side Effects / State: One search request plus one stock request per product.
        Dependencies: _call, parse_search_products, lookup_stock.
        Failure Modes: Missing token, HTTP/network/JSON failures, Tiny error status, and
            empty result sets all return success=False; stock failures only degrade the
            affected products to unknown stock.
        If Removed: Confirmed and direct searches cannot produce results.
        Testing Notes: Mock both endpoints; one failing stock call must not fail the search.
        """
        if not self.configured:
            logger.warning("tiny token missing; search skipped term=%s", term)
            return CatalogResult(success=False, error=TOKEN_MISSING_MESSAGE)

        params = {"token": self._token, "pesquisa": term, "formato": "json"}
        try:
            payload = await self._call("GET", SEARCH_ENDPOINT, params)
            retorno = payload.get("retorno") or {}
            if not isinstance(retorno, dict):
                raise UpstreamError(f"unexpected Tiny retorno type {type(retorno).__name__}")
            if str(retorno.get("status", "")).upper() == "ERRO":
                logger.info("tiny search term=%s status=ERRO detail=%s", term, _first_error(retorno))
                return CatalogResult(success=False, error=not_found_message(term))
            products = parse_search_products(payload)
        except (httpx.HTTPError, ValueError, UpstreamError) as exc:
            logger.error("tiny search failed term=%s error=%s", term, exc)
            return CatalogResult(success=False, error=SEARCH_FAILED_MESSAGE)

        if not products:
            logger.info("tiny search term=%s results=0", term)
            return CatalogResult(success=False, error=not_found_message(term))

        with_stock = await self._attach_stock(products)
        logger.info("tiny search term=%s results=%d", term, len(with_stock))
        return CatalogResult(success=True, products=with_stock)

    async def lookup_stock(self, product_id: str) -> Optional[Decimal]:
        """Purpose: Fetch the stock balance ('saldo') of one product.
        Inputs/Outputs: Input is the Tiny product id; output is the balance or None when
            Tiny reports no balance.
        Side Effects / State: One POST request.
        Dependencies: _call.
        Failure Modes: Raises PartialDataError for HTTP/network/JSON failures, a
            non-OK status, or a payload whose retorno/produto is not an object.
        If Removed: Search results carry no stock information.
        Testing Notes: Mock a non-OK status and expect PartialDataError.
        """
        params = {"token": self._token, "id": str(product_id), "formato": "json"}
        try:
            payload = await self._call("POST", STOCK_ENDPOINT, params)
        except (httpx.HTTPError, ValueError, UpstreamError) as exc:
            raise PartialDataError(str(product_id), f"stock request failed: {exc}") from exc
        retorno = payload.get("retorno") or {}
        if not isinstance(retorno, dict):
            raise PartialDataError(str(product_id), f"unexpected retorno type {type(retorno).__name__}")
        if str(retorno.get("status", "")).upper() != "OK":
            raise PartialDataError(str(product_id), _first_error(retorno) or "stock status not OK")
        produto = retorno.get("produto") or {}
        if not isinstance(produto, dict):
            raise PartialDataError(str(product_id), f"unexpected produto type {type(produto).__name__}")
        return _to_decimal(produto.get("saldo"))

    async def _attach_stock(self, products: List[Product]) -> List[Product]:
        semaphore = asyncio.Semaphore(self._stock_concurrency)

        async def stock_or_unknown(product: Product) -> Product:
            async with semaphore:
                try:
                    stock = await self.lookup_stock(product.id)
                except PartialDataError as exc:
                    logger.warning("stock unknown %s", exc)
                    return product
            return product.model_copy(update={"stock": stock})

        return list(await asyncio.gather(*(stock_or_unknown(product) for product in products)))
