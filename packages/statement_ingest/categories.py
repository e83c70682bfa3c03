"""Categorization vocabulary.

Every table here is an ordered tuple: the first hit wins, so order carries
meaning (``"swiggy"`` must be tried before the generic ``"eat"``, and the
payment-rail regexes that name a merchant must precede the bare rail
fallback).
"""

from __future__ import annotations

import re

# Source categories treated as "no real category supplied".
GENERIC_CATEGORIES: frozenset[str] = frozenset({"Unclassified", "General", "", "SYSTEM"})

# Dictionary lookup over ``category + subcategory + notes`` (lower-cased).
CATEGORY_KEYWORDS: tuple[tuple[str, str], ...] = (
    # Food & dining
    ("swiggy", "Food"), ("zomato", "Food"), ("eat", "Food"), ("food", "Food"),
    ("doordash", "Food"), ("grubhub", "Food"), ("deliveroo", "Food"), ("just eat", "Food"),
    ("restaurant", "Food"), ("cafe", "Food"), ("coffee", "Food"), ("starbucks", "Food"),
    ("dunkin", "Food"), ("costa", "Food"), ("pret", "Food"), ("mcdonalds", "Food"),
    ("kfc", "Food"), ("burger", "Food"), ("pizza", "Food"), ("subway", "Food"),
    ("chipotle", "Food"), ("taco bell", "Food"), ("dominos", "Food"), ("biryani", "Food"),
    ("bakery", "Food"), ("baker", "Food"), ("cake", "Food"), ("dairy", "Food"),
    # Groceries
    ("grofers", "Groceries"), ("bigbasket", "Groceries"), ("blinkit", "Groceries"),
    ("instacart", "Groceries"), ("zepto", "Groceries"), ("instamart", "Groceries"),
    ("supermarket", "Groceries"), ("whole foods", "Groceries"), ("trader joe", "Groceries"),
    ("mart", "Groceries"), ("kirana", "Groceries"), ("vegetable", "Groceries"),
    ("walmart", "Groceries"), ("tesco", "Groceries"), ("sainsbury", "Groceries"),
    ("fruit", "Groceries"), ("milk", "Groceries"), ("aldi", "Groceries"), ("lidl", "Groceries"),
    ("carrefour", "Groceries"), ("costco", "Groceries"), ("dmart", "Groceries"),
    ("kroger", "Groceries"), ("safeway", "Groceries"), ("target", "Groceries"),
    # Transport
    ("uber", "Transport"), ("ola", "Transport"), ("rapido", "Transport"), ("lyft", "Transport"),
    ("grab", "Transport"), ("fuel", "Transport"), ("petrol", "Transport"),
    ("diesel", "Transport"), ("gas station", "Transport"), ("shell", "Transport"),
    ("exxon", "Transport"), ("chevron", "Transport"), ("toll", "Transport"),
    ("fastag", "Transport"), ("ezpass", "Transport"), ("metro", "Transport"),
    ("irctc", "Transport"), ("railway", "Transport"), ("train", "Transport"),
    ("tfl", "Transport"), ("amtrak", "Transport"), ("flight", "Transport"),
    ("indigo", "Transport"), ("ryanair", "Transport"), ("easyjet", "Transport"),
    ("bus", "Transport"), ("cab", "Transport"), ("taxi", "Transport"), ("parking", "Transport"),
    # Shopping
    ("amazon", "Shopping"), ("flipkart", "Shopping"), ("myntra", "Shopping"),
    ("ebay", "Shopping"), ("etsy", "Shopping"), ("retail", "Shopping"), ("store", "Shopping"),
    ("shop", "Shopping"), ("decathlon", "Shopping"), ("nike", "Shopping"),
    ("adidas", "Shopping"), ("zara", "Shopping"), ("h&m", "Shopping"), ("uniqlo", "Shopping"),
    ("ikea", "Shopping"), ("mall", "Shopping"), ("best buy", "Shopping"), ("apple", "Shopping"),
    # Utilities
    ("electricity", "Utilities"), ("water", "Utilities"), ("gas", "Utilities"),
    ("power", "Utilities"), ("bill", "Utilities"), ("recharge", "Utilities"),
    ("jio", "Utilities"), ("airtel", "Utilities"), ("verizon", "Utilities"),
    ("at&t", "Utilities"), ("t-mobile", "Utilities"), ("vodafone", "Utilities"),
    ("broadband", "Utilities"), ("comcast", "Utilities"), ("xfinity", "Utilities"),
    ("mobile", "Utilities"), ("internet", "Utilities"), ("council tax", "Utilities"),
    # Entertainment
    ("netflix", "Entertainment"), ("prime", "Entertainment"), ("spotify", "Entertainment"),
    ("hulu", "Entertainment"), ("disney", "Entertainment"), ("youtube", "Entertainment"),
    ("hotstar", "Entertainment"), ("bookmyshow", "Entertainment"),
    ("ticketmaster", "Entertainment"), ("cinema", "Entertainment"), ("movie", "Entertainment"),
    ("steam", "Entertainment"), ("playstation", "Entertainment"), ("xbox", "Entertainment"),
    ("nintendo", "Entertainment"),
    # Health
    ("hospital", "Health"), ("pharmacy", "Health"), ("apollo", "Health"), ("boots", "Health"),
    ("cvs", "Health"), ("walgreens", "Health"), ("doctor", "Health"), ("clinic", "Health"),
    ("gym", "Health"), ("fitness", "Health"), ("medical", "Health"), ("medicine", "Health"),
    ("dentist", "Health"),
    # Education
    ("course", "Education"), ("udemy", "Education"), ("coursera", "Education"),
    ("book", "Education"), ("kindle", "Education"), ("school", "Education"),
    ("college", "Education"), ("university", "Education"), ("tuition", "Education"),
    # Investment
    ("zerodha", "Investment"), ("groww", "Investment"), ("upstox", "Investment"),
    ("robinhood", "Investment"), ("coinbase", "Investment"), ("binance", "Investment"),
    ("mutual fund", "Investment"), ("sip", "Investment"), ("ppf", "Investment"),
    ("vanguard", "Investment"), ("fidelity", "Investment"), ("insurance", "Investment"),
    ("premium", "Investment"), ("schwab", "Investment"), ("stocks", "Investment"),
    ("401k", "Investment"),
    # Income
    ("salary", "Salary"), ("payroll", "Salary"), ("dividend", "Income"),
    ("interest", "Income"), ("refund", "Income"), ("cashback", "Income"), ("bonus", "Income"),
    # Housing and debt
    ("rent", "Housing"), ("maintenance", "Housing"), ("mortgage", "Housing"),
    ("loan", "EMI"), ("card", "Bill Payment"),
)

_RAIL = r"^(UPI|IMPS|NEFT|RTGS|ACH|ZELLE|VENMO)([-/ ])?.*"

# Higher-precision signals tried when the dictionary found nothing.
SMART_PATTERNS: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(p, re.IGNORECASE), cat)
    for p, cat in (
        (_RAIL + r"(ZOMATO|SWIGGY|DOORDASH|GRUBHUB|UBER\s?EATS)", "Food"),
        (_RAIL + r"(UBER|OLA|LYFT)", "Transport"),
        (_RAIL + r"(AMAZON|FLIPKART|EBAY)", "Shopping"),
        (_RAIL + r"(ZERODHA|GROWW|UPSTOX|ROBINHOOD|VANGUARD)", "Investment"),
        (r"^ATM\s?WDL", "Cash"),
        (r"^ATM\s?CASH", "Cash"),
        (r"^POS\s", "Shopping"),
        (r"^ACH\s?DR", "Bill Payment"),
        (r"^ACH\s?C", "Income"),
        (r"^INT\.?\s?PD", "Income"),
        (r"^INT\.?\s?COLL", "Income"),
        (r"^(DD|DIRECT DEBIT)\b", "Bill Payment"),
        (r"^(SO|STANDING ORDER)\b", "Transfer"),
        (r"\b(loan|emi|mortgage)\b", "EMI"),
        (r"^(UPI|IMPS|NEFT|RTGS|ZELLE|VENMO|WIRE|SEPA|FASTER PAY)", "Transfer"),
    )
)

# Matched on word boundaries when correcting an inferred Expense to Income.
INCOME_KEYWORDS: tuple[str, ...] = (
    "salary", "wage", "income", "bonus", "dividend", "interest", "refund", "cashback",
    "deposit", "earning", "revenue", "commission", "freelance", "consulting", "pension",
    "benefit", "gift received", "credit", "cr",
)

INCOME_CATEGORIES: frozenset[str] = frozenset({"Salary", "Income"})
TRANSFER_CATEGORIES: frozenset[str] = frozenset({"Transfer", "Credit Card Payment"})

# Banking vocabulary that marks a description as money movement between
# accounts; used by the transfer reconciler.
TRANSFER_KEYWORDS: tuple[str, ...] = (
    "transfer", "upi", "neft", "imps", "rtgs", "payment", "trf", "self", "funds", "p2a",
    "a2a", "sent to", "received from", "zelle", "venmo", "wire", "sepa", "faster payment",
    "cash app",
)


__all__ = [
    "CATEGORY_KEYWORDS",
    "GENERIC_CATEGORIES",
    "INCOME_CATEGORIES",
    "INCOME_KEYWORDS",
    "SMART_PATTERNS",
    "TRANSFER_CATEGORIES",
    "TRANSFER_KEYWORDS",
]
