from .tier_balance import BalanceConfig, balance, is_balanced, tier_quotas, under_represented_tiers

__all__ = ["BalanceConfig", "balance", "is_balanced", "tier_quotas", "under_represented_tiers"]
