"""GraphQL queries for Morpho Blue API."""


_MARKET_STATE_FIELDS = """
                supplyAssets
                borrowAssets
                supplyShares
                borrowShares
                fee
                timestamp
                rateAtTarget
"""

_ASSET_FIELDS = """
                address
                symbol
                decimals
                priceUsd
"""


class MorphoQueries:
    """GraphQL query definitions for Morpho Blue API."""

    # Market to borrow from with the liquidity vaults share with it
    MARKET_SIMULATION_QUERY = f"""
    query MarketSimulation($uniqueKey: String!, $chainId: Int!) {{
        marketByUniqueKey(uniqueKey: $uniqueKey, chainId: $chainId) {{
            uniqueKey
            lltv
            oracleAddress
            irmAddress
            loanAsset {{{_ASSET_FIELDS}            }}
            collateralAsset {{{_ASSET_FIELDS}            }}
            state {{{_MARKET_STATE_FIELDS}            }}
            reallocatableLiquidityAssets
            publicAllocatorSharedLiquidity {{
                assets
                vault {{
                    address
                    name
                }}
                allocationMarket {{
                    uniqueKey
                    lltv
                    oracleAddress
                    irmAddress
                    loanAsset {{
                        address
                        symbol
                    }}
                    collateralAsset {{
                        address
                        symbol
                    }}
                    state {{{_MARKET_STATE_FIELDS}                    }}
                }}
            }}
        }}
    }}
    """

    # Curated markets, looked up by id
    MARKETS_BY_KEYS_QUERY = f"""
    query MarketsByKeys($uniqueKeys: [String!], $chainId: Int!, $first: Int!) {{
        markets(
            first: $first
            where: {{ uniqueKey_in: $uniqueKeys, chainId_in: [$chainId] }}
        ) {{
            items {{
                uniqueKey
                lltv
                oracleAddress
                irmAddress
                loanAsset {{{_ASSET_FIELDS}                }}
                collateralAsset {{{_ASSET_FIELDS}                }}
                state {{{_MARKET_STATE_FIELDS}                }}
            }}
        }}
    }}
    """

    # Vaults supplying into a market, with positions and flow caps
    SUPPLYING_VAULTS_QUERY = f"""
    query SupplyingVaults($uniqueKey: String!, $chainId: Int!) {{
        marketByUniqueKey(uniqueKey: $uniqueKey, chainId: $chainId) {{
            supplyingVaults {{
                address
                name
                asset {{{_ASSET_FIELDS}                }}
                state {{
                    totalAssets
                    totalAssetsUsd
                    allocation {{
                        supplyAssets
                        supplyCap
                        market {{
                            uniqueKey
                            lltv
                            oracleAddress
                            irmAddress
                            loanAsset {{{_ASSET_FIELDS}                            }}
                            collateralAsset {{{_ASSET_FIELDS}                            }}
                            state {{{_MARKET_STATE_FIELDS}                            }}
                        }}
                    }}
                }}
                publicAllocatorConfig {{
                    flowCaps {{
                        maxIn
                        maxOut
                        market {{
                            uniqueKey
                        }}
                    }}
                }}
            }}
        }}
    }}
    """

    # Per market PublicAllocator targets and whitelisted vaults
    MARKET_TARGETS_QUERY = """
    query GetMarketTargets($chainId: Int!) {
        markets(where: { chainId_in: [$chainId] }, first: 1000) {
            items {
                uniqueKey
                targetBorrowUtilization
                targetWithdrawUtilization
            }
        }
        vaults(where: { chainId_in: [$chainId], whitelisted: true }, first: 1000) {
            items {
                address
            }
        }
    }
    """
