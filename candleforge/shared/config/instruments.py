"""
CandleForge – Instrument catalog
=================================
Instrumentos por defecto y mapeos a identificadores de cada proveedor.
"""

from __future__ import annotations

DEFAULT_INSTRUMENTS: tuple[str, ...] = (
    "BTC/USDT",
    "ETH/USDT",
    "SOL/USDT",
    "XRP/USDT",
    "LTC/USDT",
    "BNB/USDT",
    "MATIC/USDT",
    "DOGE/USDT",
    "ADA/USDT",
    "SHIB/USDT",
    "AVAX/USDT",
    "LINK/USDT",
    "DOT/USDT",
    "UNI/USDT",
    "TRX/USDT",
    "XLM/USDT",
    "VET/USDT",
    "EOS/USDT",
    "FIL/USDT",
    "ICP/USDT",
)

# Instrumento → coin id de CoinGecko
COINGECKO_IDS: dict[str, str] = {
    "BTC/USDT": "bitcoin",
    "ETH/USDT": "ethereum",
    "SOL/USDT": "solana",
    "XRP/USDT": "ripple",
    "LTC/USDT": "litecoin",
    "BNB/USDT": "binancecoin",
    "MATIC/USDT": "matic-network",
    "DOGE/USDT": "dogecoin",
    "ADA/USDT": "cardano",
    "SHIB/USDT": "shiba-inu",
    "AVAX/USDT": "avalanche-2",
    "LINK/USDT": "chainlink",
    "DOT/USDT": "polkadot",
    "UNI/USDT": "uniswap",
    "TRX/USDT": "tron",
    "XLM/USDT": "stellar",
    "VET/USDT": "vechain",
    "EOS/USDT": "eos",
    "FIL/USDT": "filecoin",
    "ICP/USDT": "internet-computer",
}


def to_stream_symbol(instrument: str) -> str:
    """'BTC/USDT' → 'btcusdt' (nombre de stream de Binance)."""
    return instrument.replace("/", "").replace("-", "").lower()
