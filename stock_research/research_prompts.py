"""
Centralized prompts sent to the generation backend.
"""

from __future__ import annotations

SUBJECT_PLACEHOLDER = "{subject}"

REPORT_SYSTEM_PROMPT: str = (
    "You are a senior buy-side equity research analyst writing for an investment committee. "
    "Write in Markdown using only `#`, `##` and `###` headings, `-` bullet lists, **bold** emphasis "
    "and plain paragraphs. Do not use tables, links, images, code blocks or HTML. "
    "Be specific, quantitative where possible, and state clearly when information may be out of date."
)

CREDENTIAL_CHECK_PROMPT: str = "Say 'The key matches' if you can read this."

DEEP_RESEARCH_TEMPLATE: str = """# Deep Research Memo: {subject}

Act as an institutional equity analyst. Produce a comprehensive 13-point investment memo on {subject}.
If {subject} is a ticker symbol, identify the company it refers to; if it is a company name, identify its primary listing.

Cover every section below, in order, each under its own `##` heading:

## 1. Business Overview
What {subject} sells, to whom, and how it makes money. Break down revenue by segment and geography.

## 2. Industry & Market Position
Market size, growth, structure, and where {subject} ranks against its closest competitors.

## 3. Competitive Moat
Sources of durable advantage (brand, network effects, switching costs, scale, IP) and how defensible each one is.

## 4. Management & Capital Allocation
Leadership track record, insider ownership, incentives, buybacks, dividends and acquisitions.

## 5. Financial Performance
Revenue growth, gross and operating margins, and earnings trends over the last five years.

## 6. Balance Sheet & Cash Flow
Liquidity, leverage, free cash flow conversion and capital intensity.

## 7. Growth Drivers
The catalysts most likely to expand revenue and earnings for {subject} over the next three to five years.

## 8. Risks
Business, financial, regulatory and macro risks, ranked by likelihood and impact.

## 9. Valuation
Current multiples versus history and peers, plus a simple scenario-based fair value range.

## 10. Bull Case
The most credible optimistic scenario for {subject} and what would need to go right.

## 11. Bear Case
The most credible pessimistic scenario for {subject} and what would need to go wrong.

## 12. Key Metrics to Monitor
The handful of indicators that would confirm or break the thesis.

## 13. Verdict
A clear Buy, Hold or Sell conclusion on {subject} with a one-paragraph justification and a conviction level.

Use `-` bullet lists for enumerations and **bold** for key figures. Finish with a one-line disclaimer that this memo is for research purposes only.
"""


def build_prompt(subject: str) -> str:
    """Return the full research instruction for *subject*.

    The subject is inserted verbatim into every placeholder; no escaping is
    applied, so a subject that reads like an instruction reaches the model
    unchanged.
    """

    return DEEP_RESEARCH_TEMPLATE.replace(SUBJECT_PLACEHOLDER, subject)
