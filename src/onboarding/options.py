"""
Onboarding Options - Enumerated catalogues.

Languages, industries, conversation partners and situations the user picks
from during onboarding. Enum values are the display labels, so the API
accepts and returns labels directly.
"""

from enum import Enum


class Language(str, Enum):
    """Native language of the learner."""
    ENGLISH = "English"
    SPANISH = "Spanish"
    FRENCH = "French"
    GERMAN = "German"
    ITALIAN = "Italian"
    PORTUGUESE = "Portuguese"
    RUSSIAN = "Russian"
    CHINESE = "Chinese"
    JAPANESE = "Japanese"
    KOREAN = "Korean"
    ARABIC = "Arabic"
    HINDI = "Hindi"


class Industry(str, Enum):
    """Industry the learner works in."""
    BANKING_FINANCE = "Banking & Finance"
    SHIPPING_LOGISTICS = "Shipping & Logistics"
    REAL_ESTATE = "Real Estate"
    HOTELS_HOSPITALITY = "Hotels & Hospitality"
    TECHNOLOGY = "Technology"
    HEALTHCARE = "Healthcare"
    RETAIL = "Retail"
    MANUFACTURING = "Manufacturing"
    EDUCATION = "Education"
    CONSULTING = "Consulting"
    MARKETING = "Marketing & Advertising"
    LEGAL = "Legal"


class ConversationPartner(str, Enum):
    """
    Who the learner speaks English with at work.

    Declaration order is the order partners are walked through when
    collecting situations.
    """
    CLIENTS = "Clients"
    CUSTOMERS = "Customers"
    COLLEAGUES = "Colleagues"
    SUPPLIERS = "Suppliers"
    PARTNERS = "Partners"
    SENIOR_MANAGEMENT = "Senior Management"
    STAKEHOLDERS = "Stakeholders"
    OTHER = "Other"


class Situation(str, Enum):
    """A communication situation with a given partner."""
    INTERVIEWS = "Interviews"
    CONFLICT_RESOLUTION = "Conflict Resolution"
    PHONE_CALLS = "Phone Calls"
    ONE_ON_ONES = "One-on-Ones"
    FEEDBACK_SESSIONS = "Feedback Sessions"
    TEAM_DISCUSSIONS = "Team Discussions"
    NEGOTIATIONS = "Negotiations"
    STATUS_UPDATES = "Status Updates"
    INFORMAL_CHATS = "Informal Chats"
    BRIEFINGS = "Briefings"
    MEETINGS = "Meetings"
    PRESENTATIONS = "Presentations"
    TRAINING_SESSIONS = "Training Sessions"
    CLIENT_CONVERSATIONS = "Client Conversations"
    VIDEO_CONFERENCES = "Video Conferences"


# =============================================================================
# Display Metadata
# =============================================================================

LANGUAGE_FLAGS = {
    Language.ENGLISH: "🇬🇧",
    Language.SPANISH: "🇪🇸",
    Language.FRENCH: "🇫🇷",
    Language.GERMAN: "🇩🇪",
    Language.ITALIAN: "🇮🇹",
    Language.PORTUGUESE: "🇵🇹",
    Language.RUSSIAN: "🇷🇺",
    Language.CHINESE: "🇨🇳",
    Language.JAPANESE: "🇯🇵",
    Language.KOREAN: "🇰🇷",
    Language.ARABIC: "🇸🇦",
    Language.HINDI: "🇮🇳",
}

INDUSTRY_ICONS = {
    Industry.BANKING_FINANCE: "chart.line.uptrend.xyaxis",
    Industry.SHIPPING_LOGISTICS: "shippingbox",
    Industry.REAL_ESTATE: "house",
    Industry.HOTELS_HOSPITALITY: "bed.double",
    Industry.TECHNOLOGY: "laptopcomputer",
    Industry.HEALTHCARE: "heart.text.square",
    Industry.RETAIL: "cart",
    Industry.MANUFACTURING: "gearshape.2",
    Industry.EDUCATION: "graduationcap",
    Industry.CONSULTING: "person.3",
    Industry.MARKETING: "megaphone",
    Industry.LEGAL: "scale.3d",
}

PARTNER_ICONS = {
    ConversationPartner.CLIENTS: "person.2.circle",
    ConversationPartner.CUSTOMERS: "cart.circle",
    ConversationPartner.COLLEAGUES: "person.3",
    ConversationPartner.SUPPLIERS: "shippingbox",
    ConversationPartner.PARTNERS: "handshake",
    ConversationPartner.SENIOR_MANAGEMENT: "person.crop.circle.badge.checkmark",
    ConversationPartner.STAKEHOLDERS: "building.2",
    ConversationPartner.OTHER: "ellipsis.circle",
}

SITUATION_ICONS = {
    Situation.INTERVIEWS: "person.bubble",
    Situation.CONFLICT_RESOLUTION: "exclamationmark.bubble",
    Situation.PHONE_CALLS: "phone",
    Situation.ONE_ON_ONES: "person.2",
    Situation.FEEDBACK_SESSIONS: "bubble.left.and.bubble.right",
    Situation.TEAM_DISCUSSIONS: "person.3",
    Situation.NEGOTIATIONS: "hands.sparkles",
    Situation.STATUS_UPDATES: "chart.bar",
    Situation.INFORMAL_CHATS: "message",
    Situation.BRIEFINGS: "doc.text",
    Situation.MEETINGS: "calendar",
    Situation.PRESENTATIONS: "tv",
    Situation.TRAINING_SESSIONS: "book",
    Situation.CLIENT_CONVERSATIONS: "person.crop.circle",
    Situation.VIDEO_CONFERENCES: "video",
}

PARTNER_ORDER = list(ConversationPartner)


def partner_sort_key(partner: ConversationPartner) -> int:
    """Position of a partner in the declared order."""
    return PARTNER_ORDER.index(partner)


def get_onboarding_options() -> dict:
    """
    Get all selectable options with display metadata.

    Returns languages, industries, partners and situations for UI rendering.
    """
    return {
        "languages": [
            {"id": lang.value, "label": lang.value, "icon": LANGUAGE_FLAGS[lang]}
            for lang in Language
        ],
        "industries": [
            {"id": ind.value, "label": ind.value, "icon": INDUSTRY_ICONS[ind]}
            for ind in Industry
        ],
        "partners": [
            {"id": p.value, "label": p.value, "icon": PARTNER_ICONS[p]}
            for p in ConversationPartner
        ],
        "situations": [
            {"id": s.value, "label": s.value, "icon": SITUATION_ICONS[s]}
            for s in Situation
        ],
    }
