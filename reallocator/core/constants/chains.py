"""Chain identifiers supported by the planner."""

ETHEREUM_MAINNET_CHAIN_ID = 1
POLYGON_CHAIN_ID = 137
UNICHAIN_CHAIN_ID = 130
BASE_CHAIN_ID = 8453
ARBITRUM_ONE_CHAIN_ID = 42161
KATANA_CHAIN_ID = 747474

NETWORK_TO_CHAIN_ID = {
    "ethereum": ETHEREUM_MAINNET_CHAIN_ID,
    "base": BASE_CHAIN_ID,
    "polygon": POLYGON_CHAIN_ID,
    "unichain": UNICHAIN_CHAIN_ID,
    "katana": KATANA_CHAIN_ID,
    "arbitrum": ARBITRUM_ONE_CHAIN_ID,
}

CHAIN_ID_TO_NETWORK = {chain_id: name for name, chain_id in NETWORK_TO_CHAIN_ID.items()}
