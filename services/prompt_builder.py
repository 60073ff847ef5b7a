# services/prompt_builder.py
from __future__ import annotations

from datetime import date
from typing import List, Optional

from services.llm_providers import ChatMessage

SYSTEM_PROMPT = (
    "You are a FACTUAL travel planning expert. Your ONLY job is to provide 100% ACCURATE, VERIFIED information. "
    "You MUST NEVER invent, guess, or create fictional places, hotels, or restaurants. CRITICAL RULES: "
    "1) For hotels: You MUST verify each hotel exists on booking.com, expedia.com, agoda.com, or hotels.com BEFORE including it. "
    "Do NOT combine chain names with cities (e.g., 'Dan Panorama Ashdod' is WRONG if it doesn't exist - verify first!). "
    "If you cannot verify a hotel exists, DO NOT include it. "
    "2) For places: Use ONLY real tourist attractions that you can verify exist. Use exact names from Google Maps or official sources. "
    "3) For coordinates: Use ONLY real coordinates from Google Maps - never invent them. "
    "4) When in doubt: EXCLUDE. It is better to return fewer results than incorrect ones. "
    "Your accuracy is critical - users rely on this information to make real travel decisions."
)

def _fmt_budget(budget: float) -> str:
    if float(budget).is_integer():
        return str(int(budget))
    return f"{budget:.2f}"

def _json_shape(destination: str, start: str, end: str, total_days: int, budget: Optional[float]) -> str:
    budget_line = f'\n  "budget": {_fmt_budget(budget)},' if budget is not None else ""
    return f"""{{
  "destination": "{destination}",
  "startDate": "{start}",
  "endDate": "{end}",
  "totalDays": {total_days},{budget_line}
  "estimatedTotalCost": <number>,
  "currency": "<currency code like USD, EUR, GBP, JPY, etc.>",
  "itinerary": [
    {{
      "title": "<destination name>",
      "description": "<detailed description>",
      "coordinates": {{
        "latitude": <number>,
        "longitude": <number>
      }},
      "visitOrder": <number>,
      "estimatedDuration": "<duration>",
      "imageUrl": null,
      "price": <number or null>,
      "ticketLink": "<ticket URL or null>"
    }}
  ],
  "hotels": [
    {{
      "name": "<hotel name>",
      "description": "<hotel description>",
      "coordinates": {{
        "latitude": <number>,
        "longitude": <number>
      }},
      "bookingLinks": {{
        "booking": "<booking.com URL or N/A>",
        "expedia": "<expedia.com URL or N/A>",
        "agoda": "<agoda.com URL or N/A>",
        "hotels": "<hotels.com URL or N/A>"
      }},
      "estimatedPrice": <number>
    }}
  ],
  "selectedHotelIndex": 0,
  "restaurants": [
    {{
      "name": "<restaurant name>",
      "description": "<restaurant description>",
      "cuisine": "<cuisine type>",
      "priceRange": "<$ or $$ or $$$ or $$$$>",
      "coordinates": {{
        "latitude": <number>,
        "longitude": <number>
      }},
      "rating": <number 1-5>,
      "website": "<website URL or null>",
      "imageUrl": null
    }}
  ],
  "recommendations": ["<tip 1>", "<tip 2>", ...]
}}"""

def build_plan_prompt(
    destination: str,
    start_date: date,
    end_date: date,
    total_days: int,
    budget: Optional[float] = None,
) -> str:
    start = start_date.isoformat()
    end = end_date.isoformat()
    has_budget = budget is not None

    if has_budget:
        budget_text = f"with a budget of ${_fmt_budget(budget)} USD"
        hotel_price_hint = f" and budget of ${_fmt_budget(budget)}"
        cost_rule = (
            "Calculate estimated total cost for the trip in local currency "
            f"(should be close to but under the budget of ${_fmt_budget(budget)})"
        )
    else:
        budget_text = (
            "without a specific budget constraint "
            "(focus on quality experiences and provide realistic price estimates)"
        )
        hotel_price_hint = ""
        cost_rule = (
            "Provide estimated total cost for the trip in local currency based on "
            "realistic prices for activities, hotels, and restaurants"
        )

    blocks = [
        f"You are a travel planning expert. Create a detailed travel itinerary for {destination} "
        f"from {start} to {end} ({total_days} days) {budget_text}.",
        "",
        "CRITICAL REQUIREMENTS - READ CAREFULLY:",
        f"- You MUST use ONLY REAL, EXISTING places that actually exist in {destination}",
        "- Do NOT invent, make up, or create fictional places",
        '- Do NOT use generic names like "City Center" or "Main Square" unless they are the actual official names',
        "- Use the EXACT official names of places as they appear in travel guides, official websites, or Google Maps",
        "- If you are not certain a place exists, do not include it",
        "- When in doubt, exclude rather than include. It is better to return fewer results than incorrect ones.",
        "",
        "IMPORTANT: Return ONLY valid JSON, no additional text before or after.",
        "",
        "Requirements:",
        "1. Create a day-by-day itinerary with 3-5 specific destinations/attractions per day",
        "2. Each destination must include:",
        f"   - Title (REAL, EXACT name of an attraction/landmark that EXISTS in {destination})",
        "   - Description (2-3 sentences about what actually exists at this real location)",
        "   - Coordinates (REAL latitude and longitude as numbers with 6 decimal places; "
        "latitude between -90 and 90, longitude between -180 and 180)",
        "   - Visit order (sequential number starting from 1)",
        '   - Estimated duration (e.g., "2 hours", "Half day", "Full day")',
        "   - Image URL (set to null - photos are attached automatically)",
        "   - Price (entry price in local currency, null if free)",
        "   - Ticket link (URL to buy tickets if applicable, null if not needed)",
        "3. Include 2-3 hotel recommendations (as an array) with:",
        f"   - Hotel name (ONLY hotels you can VERIFY exist in {destination} on booking.com, expedia.com, "
        "agoda.com or hotels.com. Do NOT combine hotel chain names with city names. "
        'WRONG: "Dan Panorama Ashdod" (does not exist), "Marriott [City]" without verification)',
        "   - Description (2-3 sentences about the verified hotel)",
        "   - Coordinates (REAL latitude and longitude of the hotel)",
        '   - Booking links (REAL, FUNCTIONAL URLs to the booking page of that specific hotel; use "N/A" '
        "for any site where you cannot find one. Do NOT generate fake or generic links)",
        f"   - Estimated price per night in local currency (realistic for the destination{hotel_price_hint})",
        "4. Determine the local currency based on the destination (e.g., EUR for Europe, GBP for UK, JPY for Japan, USD for US)",
        f"5. {cost_rule}",
        "6. Include 5-8 restaurant recommendations in the area with:",
        f"   - Restaurant name (REAL restaurants that ACTUALLY EXIST in {destination})",
        "   - Description (2-3 sentences about the cuisine and atmosphere)",
        '   - Cuisine type (e.g., "Italian", "French", "Asian Fusion")',
        '   - Price range ("$", "$$", "$$$", "$$$$")',
        "   - Coordinates (exact latitude and longitude of the restaurant)",
        "   - Rating (1-5 stars)",
        "   - Website URL (or null)",
        "7. Include 3-5 travel recommendations/tips as an array",
        "",
        "Return the response as a valid JSON object with this EXACT structure (no markdown, no code blocks):",
        _json_shape(destination, start, end, total_days, budget),
        "",
        "CRITICAL VALIDATION RULES:",
        f"1. Every destination, hotel and restaurant MUST really exist in {destination}. "
        "It is better to return 0 hotels than to include 1 fictional hotel.",
        "2. Coordinates MUST be the real coordinates of the place - never approximate or guess them.",
        '3. Booking links MUST lead to the booking page of the specific hotel, otherwise "N/A".',
        "",
        "Return ONLY valid JSON, no additional text.",
    ]
    return "\n".join(blocks)

def build_plan_messages(
    destination: str,
    start_date: date,
    end_date: date,
    total_days: int,
    budget: Optional[float] = None,
) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=SYSTEM_PROMPT),
        ChatMessage(role="user", content=build_plan_prompt(destination, start_date, end_date, total_days, budget)),
    ]
