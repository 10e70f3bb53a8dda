"""Prompts for the discovery research call."""
from datetime import date
from typing import List, Optional

DISCOVERY_SYSTEM_PROMPT = """You are an Israeli real estate research assistant specializing in finding Pinuy-Binuy (urban renewal) projects.
Return ONLY valid JSON. No explanations, no markdown, no text before or after.
Search for projects that are publicly announced or in planning stages.
Focus on official sources: the Urban Renewal Authority, mavat.iplan.gov.il, and municipal websites.
All text should be in Hebrew.
If you can't find any new complexes, return an empty array for discovered_complexes."""

MAX_EXCLUDED_NAMES = 80


def build_discovery_prompt(
    city: str,
    min_units: int,
    existing_names: Optional[List[str]] = None,
    today: Optional[date] = None,
) -> str:
    today = today or date.today()
    exclusion = ""
    if existing_names:
        names = existing_names[:MAX_EXCLUDED_NAMES]
        exclusion = (
            "\nמתחמים שכבר ידועים לנו (אל תחזיר אותם):\n"
            + "\n".join(f"- {name}" for name in names)
            + "\n"
        )

    return f"""חפש מתחמי פינוי בינוי והתחדשות עירונית חדשים ב{city}.

אני מחפש מתחמים שעונים לקריטריונים:
- מינימום {min_units} יחידות דיור קיימות (לפי תיקון חוק 2024)
- בכל שלב תכנוני (הוכרז, בתכנון, הופקד, אושר, בביצוע)
- פרויקטים שהוכרזו או קודמו בשלוש השנים האחרונות
- עדיפות למתחמים שהוכרזו רשמית ע"י הרשות להתחדשות עירונית
{exclusion}
החזר JSON בלבד (ללא טקסט נוסף) בפורמט:

{{
  "city": "{city}",
  "discovered_complexes": [
    {{
      "name": "שם המתחם/שכונה",
      "addresses": "כתובות או גבולות המתחם",
      "existing_units": 0,
      "planned_units": 0,
      "developer": "שם היזם או null",
      "status": "הוכרז/בתכנון/הופקד/אושר/בביצוע",
      "plan_number": "מספר תוכנית אם ידוע",
      "declaration_date": "YYYY-MM-DD או null",
      "source": "מקור המידע",
      "notes": "הערות נוספות"
    }}
  ],
  "search_date": "{today.isoformat()}",
  "confidence": "high/medium/low"
}}

חפש במקורות:
- mavat.iplan.gov.il (מנהל התכנון)
- הרשות הממשלתית להתחדשות עירונית
- אתר העירייה/רשות מקומית
- אתרי חדשות נדל"ן (גלובס, כלכליסט, דה-מרקר, ynet נדל"ן)

החזר JSON בלבד."""
