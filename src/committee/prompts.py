"""Prompts for committee-status research."""

COMMITTEE_SYSTEM_PROMPT = (
    "אתה מומחה בתכנון ובנייה בישראל. השב בפורמט JSON בלבד. "
    "בדוק באתרי iplan.gov.il, מנהל התכנון, ואתרי עיריות."
)


def build_committee_prompt(name: str, city: str, plan_number: str = None, addresses: str = None) -> str:
    plan_line = f"מספר תכנית: {plan_number}\n" if plan_number else ""
    address_line = f"כתובת: {addresses}\n" if addresses else ""
    return f"""חפש החלטות ועדות תכנון עדכניות לגבי פרויקט פינוי בינוי "{name}" ב{city}.
{plan_line}{address_line}
אני מחפש מידע על:
1. האם התכנית נדונה לאחרונה בוועדה מקומית לתכנון ובנייה? מה ההחלטה?
2. האם התכנית נדונה בוועדה המחוזית? מה ההחלטה?
3. האם יש ישיבות ועדה מתוכננות בחודשים הקרובים?
4. מה סטטוס ההפקדה/אישור של התכנית?

חפש באתר מנהל התכנון, iplan, ובאתרי העיריות.

השב בפורמט JSON בלבד:
{{
  "local_committee": {{
    "discussed": true/false,
    "decision": "approved|rejected|deferred|pending|null",
    "decision_date": "YYYY-MM-DD או null",
    "notes": "פרטי ההחלטה"
  }},
  "district_committee": {{
    "discussed": true/false,
    "decision": "approved|rejected|deferred|pending|null",
    "decision_date": "YYYY-MM-DD או null",
    "notes": "פרטי ההחלטה"
  }},
  "national_committee": {{
    "discussed": true/false,
    "decision": "approved|rejected|deferred|pending|null",
    "decision_date": "YYYY-MM-DD או null",
    "notes": "פרטי ההחלטה"
  }},
  "upcoming_hearings": [
    {{
      "committee": "local|district|national",
      "date": "YYYY-MM-DD",
      "agenda_item": "תיאור"
    }}
  ],
  "current_status": "התיאור המילולי של הסטטוס הנוכחי",
  "sources": ["רשימת מקורות"],
  "confidence": "high|medium|low",
  "last_update_found": "YYYY-MM-DD או null"
}}"""
