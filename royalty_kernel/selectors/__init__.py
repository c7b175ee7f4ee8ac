"""Read-only selectors over the royalty ledger."""

from royalty_kernel.selectors.royalty_selector import RoyaltySelector

__all__ = ["RoyaltySelector"]
