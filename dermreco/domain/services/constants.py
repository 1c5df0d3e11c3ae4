
# Candidate pool
MAX_PER_TYPE = 6  # Max candidates per product_type (routine balance)
MAX_TOTAL_CANDIDATES = 25  # Hard cap on the pool sent to the LLM
ROUTINE_STEP_BONUS = 0.5  # Score bonus for canonical routine steps

# Routine steps that make up a complete skincare routine
ROUTINE_PRODUCT_TYPES = ("Cleanser", "Treatment", "Moisturizer", "Sunscreen")

# Purchasable vendors; order matters, the first one is the last-resort default
VALID_VENDORS = ("amazon", "yesstyle", "sephora")

# Fallback search URL per vendor (used when a product has no product_link)
VENDOR_SEARCH_URLS = {
    "amazon": "https://www.amazon.com/s?k={q}",
    "sephora": "https://www.sephora.com/search?keyword={q}",
    "yesstyle": "https://www.yesstyle.com/en/search.html?q={q}",
}

# LLM rerank
RERANK_MAX_CANDIDATES = 25
RETURN_COUNT_MIN = 8
RETURN_COUNT_MAX = 12

# Retry policy for outbound LLM calls
RETRY_MAX_ATTEMPTS = 3
RETRY_BASE_DELAY_S = 1.0
RETRY_MAX_DELAY_S = 10.0
RETRY_JITTER = 0.3
