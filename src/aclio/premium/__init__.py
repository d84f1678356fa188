"""Free-tier limits, subscription plans and premium gating."""
