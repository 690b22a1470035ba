"""
Static token registry for K-line routing.

Major tokens are served from Binance (CEX) for stability and low latency.
Everything else is resolved on-chain. The registry is consulted before any
network call, so known majors and stablecoins never hit an upstream API for
metadata.

Keys are lowercase ``(chain_id, token_address)`` pairs.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

NATIVE_TOKEN = "0x0000000000000000000000000000000000000000"

SUPPORTED_CHAINS: Dict[int, str] = {
    1: "Ethereum",
    56: "BNB Smart Chain",
    8453: "Base",
    97: "BNB Smart Chain Testnet",
}


@dataclass(frozen=True)
class PriceFeedEntry:
    """Static metadata for a well-known token."""

    chain_id: int
    address: str
    symbol: str
    decimals: int
    binance_symbol: Optional[str] = None
    stable: bool = False


PRICE_FEEDS: List[PriceFeedEntry] = [
    # BSC (56)
    PriceFeedEntry(56, NATIVE_TOKEN, "BNB", 18, binance_symbol="BNBUSDT"),
    PriceFeedEntry(56, "0xbb4CdB9CBd36B01bD1cBaEBF2De08d9173bc095c", "WBNB", 18, binance_symbol="BNBUSDT"),
    PriceFeedEntry(56, "0x55d398326f99059fF775485246999027B3197955", "USDT", 18, stable=True),
    PriceFeedEntry(56, "0x8AC76a51cc950d9822D68b83fE1Ad97B32Cd580d", "USDC", 18, binance_symbol="USDCUSDT", stable=True),
    PriceFeedEntry(56, "0x2170Ed0880ac9A755fd29B2688956BD959F933F8", "ETH", 18, binance_symbol="ETHUSDT"),
    PriceFeedEntry(56, "0x7130d2A12B9BCbFAe4f2634d864A1Ee1Ce3Ead9c", "BTCB", 18, binance_symbol="BTCUSDT"),
    # Ethereum (1)
    PriceFeedEntry(1, NATIVE_TOKEN, "ETH", 18, binance_symbol="ETHUSDT"),
    PriceFeedEntry(1, "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2", "WETH", 18, binance_symbol="ETHUSDT"),
    PriceFeedEntry(1, "0xdAC17F958D2ee523a2206206994597C13D831ec7", "USDT", 6, stable=True),
    PriceFeedEntry(1, "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48", "USDC", 6, stable=True),
    PriceFeedEntry(1, "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599", "WBTC", 8, binance_symbol="BTCUSDT"),
    # Base (8453)
    PriceFeedEntry(8453, "0x4200000000000000000000000000000000000006", "WETH", 18, binance_symbol="ETHUSDT"),
    PriceFeedEntry(8453, "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913", "USDC", 6, stable=True),
    # BSC Testnet (97), mapped to mainnet Binance symbols for development
    PriceFeedEntry(97, NATIVE_TOKEN, "BNB", 18, binance_symbol="BNBUSDT"),
    PriceFeedEntry(97, "0xae13d989daC2f0dEbFf460aC112a837C89BAa7cd", "WBNB", 18, binance_symbol="BNBUSDT"),
    PriceFeedEntry(97, "0x337610d27c682E347C9cD60BD4b3b107C9d34dDd", "USDT", 18, stable=True),
    PriceFeedEntry(97, "0x8BaBbB98678facC7342735486C851ABD7A0d17Ca", "ETH", 18, binance_symbol="ETHUSDT"),
    PriceFeedEntry(97, "0x6ce8dA28E2f864420840cF74474eFf5fD80E65B8", "BTCB", 18, binance_symbol="BTCUSDT"),
    PriceFeedEntry(97, "0x64544969ed7EBf5f083679233325356EbE738930", "USDC", 18, binance_symbol="USDCUSDT", stable=True),
]

# Reference quote assets per chain, in preference order. The first entry is
# the default quote when a caller does not name one.
DEFAULT_QUOTES: Dict[int, List[str]] = {
    1: [
        "0xdac17f958d2ee523a2206206994597c13d831ec7",  # USDT
        "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48",  # USDC
        "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2",  # WETH
    ],
    56: [
        "0x55d398326f99059ff775485246999027b3197955",  # USDT
        "0x8ac76a51cc950d9822d68b83fe1ad97b32cd580d",  # USDC
        "0xbb4cdb9cbd36b01bd1cbaebf2de08d9173bc095c",  # WBNB
    ],
    8453: [
        "0x833589fcd6edb6e08f4c7c32d4f71b54bda02913",  # USDC
        "0x4200000000000000000000000000000000000006",  # WETH
    ],
    97: [
        "0x337610d27c682e347c9cd60bd4b3b107c9d34ddd",  # USDT
    ],
}

# Uniswap V3 / PancakeSwap V3 subgraphs, tried in order. Testnets have none.
DEFAULT_SUBGRAPH_ENDPOINTS: Dict[int, List[Dict[str, str]]] = {
    1: [{"dex": "Uniswap V3", "url": "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3"}],
    56: [{"dex": "PancakeSwap V3", "url": "https://api.thegraph.com/subgraphs/name/pancakeswap/exchange-v3-bsc"}],
    8453: [{"dex": "Uniswap V3 Base", "url": "https://api.thegraph.com/subgraphs/name/uniswap/uniswap-v3-base"}],
}

_FEED_INDEX: Dict[Tuple[int, str], PriceFeedEntry] = {
    (entry.chain_id, entry.address.lower()): entry for entry in PRICE_FEEDS
}


def get_price_feed(chain_id: int, token_address: str) -> Optional[PriceFeedEntry]:
    """Look up a registry entry; ``None`` for unknown / long-tail tokens."""
    return _FEED_INDEX.get((chain_id, token_address.lower()))


def has_binance_mapping(chain_id: int, token_address: str) -> bool:
    feed = get_price_feed(chain_id, token_address)
    return feed is not None and feed.binance_symbol is not None


def is_stablecoin(chain_id: int, token_address: str) -> bool:
    feed = get_price_feed(chain_id, token_address)
    return feed is not None and feed.stable


def default_quote(chain_id: int) -> Optional[str]:
    quotes = DEFAULT_QUOTES.get(chain_id)
    return quotes[0] if quotes else None


def is_supported_chain(chain_id: int) -> bool:
    return chain_id in SUPPORTED_CHAINS
