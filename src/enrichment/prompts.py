"""Prompts for enrichment research and validation calls."""
import json
from typing import Any, Dict, Optional

RESEARCH_SYSTEM_PROMPT = (
    'אתה חוקר נדל"ן המתמחה בהתחדשות עירונית בישראל. '
    "מצא מידע עדכני ומדויק. אם אין מידע, החזר null. החזר JSON בלבד."
)

PRICING_SYSTEM_PROMPT = (
    'אתה אנליסט נדל"ן. מצא מחירים אמיתיים ועדכניים. '
    "השתמש במקורות רשמיים כמו nadlan.gov.il. החזר JSON בלבד."
)

ANALYST_SYSTEM_PROMPT = (
    "You are a senior urban-renewal (Pinuy-Binuy) investment analyst in Israel. "
    "You validate research gathered by others, resolve contradictions and "
    "answer with a single JSON object only."
)


def _context(name: str, city: str, addresses: Optional[str], plan_number: Optional[str], developer: Optional[str] = None) -> str:
    lines = []
    if addresses:
        lines.append(f"כתובות: {addresses}")
    if plan_number:
        lines.append(f"תכנית: {plan_number}")
    if developer:
        lines.append(f"יזם: {developer}")
    return "\n".join(lines)


def build_overview_prompt(name: str, city: str, addresses=None, plan_number=None) -> str:
    return f"""מצא מידע עדכני על פרויקט פינוי בינוי "{name}" ב{city}.
{_context(name, city, addresses, plan_number)}

החזר JSON בלבד:
{{
  "status": "declared|planning|pre_deposit|deposited|approved|permit|construction",
  "developer": "שם היזם",
  "developer_strength": "strong|medium|weak",
  "plan_stage": "תיאור מילולי של שלב התכנון",
  "existing_units": null or number,
  "planned_units": null or number,
  "num_buildings": null or number,
  "news": "חדשות אחרונות בשורה אחת",
  "sentiment": "positive|neutral|negative",
  "has_negative_news": true/false,
  "signature_percent": null or number
}}"""


def build_developer_check_prompt(developer: str) -> str:
    return f"""מה הסטטוס של יזם הנדל"ן "{developer}" בישראל? האם חזק/בינוני/חלש? האם יש בעיות ידועות?
החזר JSON: {{ "risk_level": "low|medium|high", "strength": "strong|medium|weak", "notes": "הערה קצרה" }}"""


def build_pricing_prompt(city: str, addresses=None, neighborhood=None) -> str:
    address_line = f"כתובת ספציפית: {addresses}\n" if addresses else ""
    neighborhood_line = f"שכונה: {neighborhood}\n" if neighborhood else ""
    return f"""מצא מחירי דירות ישנות (לפני פינוי בינוי) ב{city}:
{address_line}{neighborhood_line}
חפש ב-yad2, madlan, nadlan.gov.il:
1. מחיר ממוצע למ"ר של דירות ישנות (3-4 חדרים, בניין ישן) באזור הספציפי
2. מחיר ממוצע למ"ר של דירות ישנות בעיר כולה
3. מגמת מחירים (עולה/יורד/יציב)
4. מספר עסקאות שנרשמו באזור בשנה האחרונה

החזר JSON בלבד:
{{
  "price_per_sqm_area": number or null,
  "price_per_sqm_city_avg": number or null,
  "price_trend": "rising|stable|declining",
  "transaction_count": number or null,
  "confidence": "high|medium|low"
}}"""


def build_signature_prompt(name: str, city: str, addresses=None, plan_number=None, developer=None) -> str:
    return f"""חפש מידע על אחוזי חתימה / הסכמת דיירים בפרויקט פינוי בינוי "{name}" ב{city}.
{_context(name, city, addresses, plan_number, developer)}

חפש ב:
- פרוטוקולים של ועדות תכנון
- כתבות חדשותיות
- פורומים ורשתות חברתיות
- אתרי היזם

החזר JSON בלבד:
{{
  "signature_percent": number (0-100) or null,
  "source_type": "protocol|press|social|developer|none",
  "confidence": "high|medium|low"
}}"""


def build_analysis_prompt(name: str, city: str, current: Dict[str, Any], research: Dict[str, Any]) -> str:
    return f"""Validate the research collected for the urban-renewal complex "{name}" in {city}.

Current record:
{json.dumps(current, ensure_ascii=False, default=str, indent=2)}

New research (may contain errors):
{json.dumps(research, ensure_ascii=False, default=str, indent=2)}

Answer with JSON only:
{{
  "status": "declared|planning|pre_deposit|deposited|approved|permit|construction",
  "plan_stage": "short description of the planning stage",
  "developer_strength": "strong|medium|weak",
  "developer_risk_level": "low|medium|high",
  "news_sentiment": "positive|neutral|negative",
  "has_negative_news": true/false,
  "has_enforcement_cases": true/false,
  "is_receivership": true/false,
  "has_bankruptcy_proceedings": true/false,
  "summary": "two sentences on the investment case"
}}"""


def build_developer_profile_prompt(developer: str) -> str:
    return f"""נתח לעומק את יזם הנדל"ן "{developer}" בישראל:
1. האם פעיל? כמה פרויקטים של התחדשות עירונית?
2. רמת סיכון (low/medium/high)
3. חוזק פיננסי (strong/medium/weak)
4. תיקי הוצאה לפועל, כינוס נכסים או הליכי חדלות פירעון?

החזר JSON: {{
  "risk_level": "low|medium|high",
  "strength": "strong|medium|weak",
  "active_projects": number,
  "has_enforcement_cases": true/false,
  "is_receivership": true/false,
  "has_bankruptcy_proceedings": true/false,
  "known_issues": "תיאור קצר או null"
}}"""
