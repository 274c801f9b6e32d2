"""Constants for the challenge escrow ledger."""

# Time bounds (seconds)
VOTING_PERIOD = 24 * 60 * 60  # 24 hours
REMEDIATION_PERIOD = 7 * 24 * 60 * 60  # 7 days

# Escrowed asset (USDC, 6 decimals)
USDC_DECIMALS = 6
USDC_UNIT = 10**USDC_DECIMALS

# Deposit bounds in smallest units
MIN_DEPOSIT = 1 * USDC_UNIT  # 1 USDC
MAX_DEPOSIT = 10_000 * USDC_UNIT  # 10,000 USDC

# Guarantor set bounds
MIN_GUARANTORS = 1
MAX_GUARANTORS = 10

# Fees
BPS_DENOMINATOR = 10_000
MAX_FEE_BPS = 1_000  # 10%
