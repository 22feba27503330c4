"""
FastAPI endpoints for the Quote Aggregator service.
One POST endpoint per asset type, each taking {"symbols": [...]}.
"""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ..api.schemas import ErrorResponse, QuoteRequest
from ..core.exceptions import QuoteError
from ..core.logging_config import create_logger
from ..models.market_data import AssetType
from ..services.data_aggregator import QuoteAggregator

logger = create_logger(__name__)

# Create API router
router = APIRouter()

FAILED_PROVIDERS_HEADER = "X-Quote-Failures"


def get_aggregator(request: Request) -> QuoteAggregator:
    return request.app.state.aggregator


def error_response(code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=code,
        content=ErrorResponse(code=code, message=message).model_dump()
    )


def invalid_request_response() -> JSONResponse:
    return error_response(400, "Invalid request")


async def handle_quote_request(
    asset_type: AssetType,
    payload: QuoteRequest,
    aggregator: QuoteAggregator
) -> JSONResponse:
    """
    Serve a quote request for one asset type.

    Returns the quotes as a JSON array. Providers that failed while others
    succeeded are listed in the X-Quote-Failures header.
    """
    if not payload.has_symbols():
        logger.debug("Invalid quote request", extra={"asset_type": asset_type.value})
        return invalid_request_response()

    try:
        logger.debug("Quote request received", extra={
            "asset_type": asset_type.value,
            "symbols": payload.symbols
        })

        batch = await aggregator.get_quotes(payload.symbols, asset_type)
        if batch.failures and not batch.quotes:
            raise batch.failures[0].error

        content = [asset.to_response() for asset in batch.quotes]
        headers = {}
        if batch.failures:
            headers[FAILED_PROVIDERS_HEADER] = ",".join(batch.failed_providers)

        logger.debug("Quote response", extra={
            "asset_type": asset_type.value,
            "quotes": content,
            "failed_providers": batch.failed_providers
        })
        return JSONResponse(content=content, headers=headers)

    except QuoteError as e:
        logger.debug("Quote request failed", extra={
            "asset_type": asset_type.value,
            "error": str(e)
        }, exc_info=True)
        return error_response(500, str(e))

    except Exception as e:
        logger.error("Unexpected error while serving quotes", extra={
            "asset_type": asset_type.value,
            "error": str(e)
        }, exc_info=True)
        return error_response(500, "Generic error")


@router.post("/stock")
async def stock_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    """Stock quotes."""
    return await handle_quote_request(AssetType.STOCK, payload, aggregator)


@router.post("/bond")
async def bond_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    """Bond quotes; prices may be expressed as percent of par."""
    return await handle_quote_request(AssetType.BOND, payload, aggregator)


@router.post("/commodity")
async def commodity_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    return await handle_quote_request(AssetType.COMMODITY, payload, aggregator)


@router.post("/crypto")
async def crypto_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    return await handle_quote_request(AssetType.CRYPTOCURRENCY, payload, aggregator)


@router.post("/forex")
async def forex_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    """Currency pair quotes, e.g. EURUSD."""
    return await handle_quote_request(AssetType.FOREX, payload, aggregator)


@router.post("/mutualfund")
async def mutual_fund_quotes(payload: QuoteRequest, aggregator: QuoteAggregator = Depends(get_aggregator)):
    return await handle_quote_request(AssetType.MUTUAL_FUND, payload, aggregator)


@router.post("/quotes/{asset_type}")
async def quotes(
    asset_type: AssetType,
    payload: QuoteRequest,
    aggregator: QuoteAggregator = Depends(get_aggregator)
):
    """
    Quotes for any asset type.

    Args:
        asset_type: stock, bond, commodity, cryptocurrency, forex or mutualfund
    """
    return await handle_quote_request(asset_type, payload, aggregator)
