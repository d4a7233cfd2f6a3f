# Fixed-point scale of oracle rates (USD per native unit * ONE_USD)
ONE_USD = 10**18

# Tier 0 marks a participant without stake
UNGRADED_TIER = 0

# Upper bound for any paged ledger query (defaults live in settings)
MAX_PAGE_LIMIT = 1000

# Attribute carrying the tier number in NFT metadata (compared case-insensitively)
NFT_TIER_TRAIT = "tier"

# Width of stored amounts: NUMERIC(AMOUNT_DIGITS, 0)
AMOUNT_DIGITS = 40
