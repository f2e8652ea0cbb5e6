"""
Route and intent catalog for the marketplace.
Defines every navigable route, the intents that reach them, and the
phrase templates used to recognize a spoken destination.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class CulturalRegister(str, Enum):
    """Politeness register of a spoken command."""
    FORMAL = "formal"
    INFORMAL = "informal"
    RESPECTFUL = "respectful"
    DIRECT = "direct"


@dataclass(frozen=True)
class LocalizedRouteInfo:
    """Display name, spoken aliases and description of a route in one language."""
    name: str
    aliases: Tuple[str, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class Route:
    """A navigable application route. Immutable once registered."""
    path: str
    name: str
    category: str
    requires_auth: bool = False
    allowed_roles: Tuple[str, ...] = ()
    required_permissions: Tuple[str, ...] = ()
    parameters: Tuple[str, ...] = ()
    security_level: str = "public"
    fallback_route: Optional[str] = None
    localized: Dict[str, LocalizedRouteInfo] = field(default_factory=dict, hash=False, compare=False)

    def display_name(self, language: str) -> str:
        info = self.localized.get(language)
        return info.name if info else self.name

    def to_dict(self, language: Optional[str] = None) -> Dict:
        data = {
            "path": self.path,
            "name": self.display_name(language) if language else self.name,
            "category": self.category,
            "requires_auth": self.requires_auth,
            "allowed_roles": list(self.allowed_roles),
            "required_permissions": list(self.required_permissions),
            "parameters": list(self.parameters),
            "security_level": self.security_level,
            "fallback_route": self.fallback_route
        }
        if language and language in self.localized:
            data["aliases"] = list(self.localized[language].aliases)
            data["description"] = self.localized[language].description
        return data


@dataclass
class IntentPhrases:
    """Spoken patterns and replies for an intent in one language."""
    patterns: List[Tuple[str, CulturalRegister]] = field(default_factory=list)
    responses: List[str] = field(default_factory=list)
    confirmation_messages: List[str] = field(default_factory=list)


@dataclass
class IntentMapping:
    """Maps a named intent onto one or more candidate routes."""
    name: str
    routes: List[str]
    category: str = "navigation"  # "navigation", "action" or "query"
    priority: int = 5
    confirmation_required: bool = False
    parameters: List[str] = field(default_factory=list)
    role_routes: Dict[str, str] = field(default_factory=dict)
    phrases: Dict[str, IntentPhrases] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return {
            "name": self.name,
            "routes": self.routes,
            "category": self.category,
            "priority": self.priority,
            "confirmation_required": self.confirmation_required,
            "parameters": self.parameters,
            "role_routes": self.role_routes,
            "languages": sorted(self.phrases.keys())
        }


# Intent names with special handling
HOME_INTENT = "navigate_home"
BACK_INTENT = "navigate_back"
HELP_INTENT = "help"

# Default landing route per role
ROLE_DEFAULT_ROUTES = {
    "artisan": "/dashboard",
    "buyer": "/marketplace",
    "admin": "/admin"
}

# Permissions granted to each role ("*" grants everything)
ROLE_PERMISSIONS = {
    "admin": ["*"],
    "artisan": [
        "create_product",
        "manage_profile",
        "view_finance",
        "access_tools",
        "view_trends",
        "access_schemes"
    ],
    "buyer": [
        "browse_marketplace",
        "manage_profile",
        "manage_cart",
        "manage_wishlist",
        "view_trends"
    ]
}

_F = CulturalRegister.FORMAL
_I = CulturalRegister.INFORMAL
_R = CulturalRegister.RESPECTFUL
_D = CulturalRegister.DIRECT


def _loc(name: str, aliases: List[str], description: str) -> LocalizedRouteInfo:
    return LocalizedRouteInfo(name=name, aliases=tuple(aliases), description=description)


def default_routes() -> List[Route]:
    """Routes of the marketplace application."""
    return [
        Route(
            path="/",
            name="Home",
            category="main",
            localized={
                "en-US": _loc("Home", ["landing page"], "Welcome page"),
                "hi-IN": _loc("मुख पृष्ठ", ["स्वागत पृष्ठ"], "स्वागत पृष्ठ")
            }
        ),
        Route(
            path="/auth",
            name="Sign In",
            category="main",
            localized={
                "en-US": _loc("Sign In", ["login", "sign in"], "Sign in or create an account"),
                "hi-IN": _loc("लॉग इन", ["लॉगिन", "साइन इन"], "साइन इन करें या खाता बनाएं")
            }
        ),
        Route(
            path="/dashboard",
            name="Dashboard",
            category="main",
            requires_auth=True,
            security_level="authenticated",
            fallback_route="/auth",
            localized={
                "en-US": _loc(
                    "Dashboard",
                    ["dashboard", "main page", "main dashboard"],
                    "Your personal overview"
                ),
                "hi-IN": _loc(
                    "डैशबोर्ड",
                    ["डैशबोर्ड", "मुख्य पृष्ठ"],
                    "आपका व्यक्तिगत अवलोकन"
                )
            }
        ),
        Route(
            path="/profile",
            name="Profile",
            category="profile",
            requires_auth=True,
            required_permissions=("manage_profile",),
            parameters=("section",),
            security_level="authenticated",
            fallback_route="/auth",
            localized={
                "en-US": _loc(
                    "Profile",
                    ["profile", "my profile", "account", "my account"],
                    "Manage your profile and account"
                ),
                "hi-IN": _loc(
                    "प्रोफाइल",
                    ["प्रोफाइल", "मेरी प्रोफाइल", "खाता"],
                    "अपनी प्रोफाइल और खाता प्रबंधित करें"
                )
            }
        ),
        Route(
            path="/marketplace",
            name="Marketplace",
            category="marketplace",
            parameters=("category", "search"),
            localized={
                "en-US": _loc(
                    "Marketplace",
                    ["marketplace", "market", "shop", "store", "products"],
                    "Browse handmade products"
                ),
                "hi-IN": _loc(
                    "बाज़ार",
                    ["बाज़ार", "बाजार", "मार्केटप्लेस", "दुकान", "उत्पाद"],
                    "हस्तनिर्मित उत्पाद देखें"
                )
            }
        ),
        Route(
            path="/smart-product-creator",
            name="Product Creator",
            category="tools",
            requires_auth=True,
            allowed_roles=("artisan",),
            required_permissions=("create_product",),
            security_level="role_restricted",
            fallback_route="/marketplace",
            localized={
                "en-US": _loc(
                    "Product Creator",
                    ["product creator", "smart product creator", "create product", "new product"],
                    "Create product listings with AI help"
                ),
                "hi-IN": _loc(
                    "उत्पाद निर्माता",
                    ["उत्पाद निर्माता", "नया उत्पाद", "प्रोडक्ट क्रिएटर"],
                    "AI की मदद से उत्पाद सूची बनाएं"
                )
            }
        ),
        Route(
            path="/trend-spotter",
            name="Trend Spotter",
            category="tools",
            requires_auth=True,
            allowed_roles=("artisan", "buyer"),
            required_permissions=("view_trends",),
            security_level="role_restricted",
            fallback_route="/dashboard",
            localized={
                "en-US": _loc(
                    "Trend Spotter",
                    ["trends", "trend spotter", "market trends"],
                    "Discover what is trending"
                ),
                "hi-IN": _loc(
                    "ट्रेंड स्पॉटर",
                    ["ट्रेंड", "रुझान", "ट्रेंड स्पॉटर"],
                    "देखें क्या चलन में है"
                )
            }
        ),
        Route(
            path="/finance",
            name="Finance",
            category="finance",
            requires_auth=True,
            allowed_roles=("artisan",),
            required_permissions=("view_finance",),
            security_level="role_restricted",
            fallback_route="/dashboard",
            localized={
                "en-US": _loc(
                    "Finance",
                    ["finance", "finances", "earnings", "sales"],
                    "Track your sales and earnings"
                ),
                "hi-IN": _loc(
                    "वित्त",
                    ["वित्त", "कमाई", "बिक्री"],
                    "अपनी बिक्री और कमाई देखें"
                )
            }
        ),
        Route(
            path="/yojana-mitra",
            name="Yojana Mitra",
            category="tools",
            requires_auth=True,
            allowed_roles=("artisan",),
            required_permissions=("access_schemes",),
            security_level="role_restricted",
            fallback_route="/dashboard",
            localized={
                "en-US": _loc(
                    "Yojana Mitra",
                    ["yojana mitra", "schemes", "government schemes"],
                    "Find government schemes for artisans"
                ),
                "hi-IN": _loc(
                    "योजना मित्र",
                    ["योजना मित्र", "योजना", "योजनाएं", "सरकारी योजना"],
                    "कारीगरों के लिए सरकारी योजनाएं खोजें"
                )
            }
        ),
        Route(
            path="/admin",
            name="Admin Panel",
            category="admin",
            requires_auth=True,
            allowed_roles=("admin",),
            security_level="admin_only",
            fallback_route="/dashboard",
            localized={
                "en-US": _loc("Admin Panel", ["admin", "admin panel"], "Platform administration"),
                "hi-IN": _loc("एडमिन पैनल", ["एडमिन", "एडमिन पैनल"], "प्लेटफ़ॉर्म प्रशासन")
            }
        )
    ]


def default_intents() -> List[IntentMapping]:
    """Intents recognized out of the box, in English and Hindi."""
    return [
        IntentMapping(
            name=HOME_INTENT,
            routes=["/marketplace"],
            priority=10,
            role_routes=dict(ROLE_DEFAULT_ROUTES),
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("go home", _D), ("home", _D), ("go to home", _D), ("home page", _D),
                        ("take me home", _I), ("please take me to the home page", _F)
                    ],
                    responses=["Taking you home"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("होम", _D), ("होम पेज", _D), ("होम पेज दिखाओ", _D),
                        ("घर जाओ", _I), ("कृपया होम पेज पर ले चलें", _R)
                    ],
                    responses=["होम पेज पर ले जा रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_dashboard",
            routes=["/dashboard"],
            priority=9,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("go to dashboard", _D), ("open dashboard", _D), ("show dashboard", _D),
                        ("dashboard", _D), ("main page", _D), ("navigate to dashboard", _F),
                        ("please open the dashboard", _F), ("take me to the dashboard", _I),
                        ("would you kindly open the dashboard", _R)
                    ],
                    responses=["Opening your dashboard"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("डैशबोर्ड पर जाओ", _D), ("डैशबोर्ड खोलो", _D), ("डैशबोर्ड दिखाओ", _D),
                        ("डैशबोर्ड", _D), ("मुख्य पृष्ठ", _D), ("डैशबोर्ड पर जाएं", _F),
                        ("कृपया डैशबोर्ड खोलें", _R)
                    ],
                    responses=["आपका डैशबोर्ड खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_profile",
            routes=["/profile"],
            priority=8,
            parameters=["section"],
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("go to profile", _D), ("open profile", _D), ("profile", _D),
                        ("my profile", _I), ("show my profile", _I), ("edit profile", _D),
                        ("account settings", _D), ("please open my profile", _F)
                    ],
                    responses=["Opening your profile"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("प्रोफाइल", _D), ("प्रोफाइल खोलो", _D), ("प्रोफाइल दिखाओ", _D),
                        ("मेरी प्रोफाइल", _I), ("खाता सेटिंग", _D), ("कृपया मेरी प्रोफाइल खोलें", _R)
                    ],
                    responses=["आपकी प्रोफाइल खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_marketplace",
            routes=["/marketplace"],
            priority=8,
            parameters=["category", "search"],
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("go to marketplace", _D), ("open marketplace", _D), ("marketplace", _D),
                        ("browse products", _D), ("show products", _D), ("shop", _D),
                        ("go shopping", _I), ("i want to buy something", _I),
                        ("please show me the marketplace", _F)
                    ],
                    responses=["Opening the marketplace"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("बाज़ार", _D), ("बाज़ार खोलो", _D), ("बाजार जाओ", _D),
                        ("मार्केटप्लेस", _D), ("उत्पाद दिखाओ", _D), ("खरीदारी करनी है", _I),
                        ("कृपया बाज़ार दिखाएं", _R)
                    ],
                    responses=["बाज़ार खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_create_product",
            routes=["/smart-product-creator"],
            category="action",
            priority=7,
            confirmation_required=True,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("create product", _D), ("create a product", _D), ("add product", _D),
                        ("add new product", _D), ("new product", _D), ("open product creator", _D),
                        ("i want to sell something", _I), ("please create a new product", _F)
                    ],
                    responses=["Opening the product creator"],
                    confirmation_messages=["Do you want to create a new product?"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("उत्पाद बनाओ", _D), ("नया उत्पाद", _D), ("प्रोडक्ट बनाओ", _D),
                        ("नया प्रोडक्ट जोड़ो", _D), ("कृपया नया उत्पाद बनाएं", _R)
                    ],
                    responses=["उत्पाद निर्माता खोल रहे हैं"],
                    confirmation_messages=["क्या आप नया उत्पाद बनाना चाहते हैं?"]
                )
            }
        ),
        IntentMapping(
            name="navigate_trends",
            routes=["/trend-spotter"],
            priority=6,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("show trends", _D), ("trends", _D), ("trend spotter", _D),
                        ("market trends", _D), ("trending products", _D), ("what is trending", _I)
                    ],
                    responses=["Opening the trend spotter"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("ट्रेंड", _D), ("ट्रेंड दिखाओ", _D), ("ट्रेंडिंग उत्पाद", _D),
                        ("बाज़ार के रुझान", _F), ("क्या चल रहा है", _I)
                    ],
                    responses=["ट्रेंड स्पॉटर खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_finance",
            routes=["/finance"],
            priority=6,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("finance", _D), ("open finance", _D), ("show finances", _D),
                        ("my earnings", _I), ("sales report", _D), ("check my money", _I)
                    ],
                    responses=["Opening your finances"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("वित्त", _D), ("वित्त दिखाओ", _D), ("मेरी कमाई", _I),
                        ("बिक्री रिपोर्ट", _D), ("पैसे का हिसाब", _I)
                    ],
                    responses=["आपका वित्त खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name="navigate_yojana",
            routes=["/yojana-mitra"],
            priority=5,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("government schemes", _D), ("show schemes", _D), ("find schemes", _D),
                        ("yojana mitra", _D), ("schemes for artisans", _F)
                    ],
                    responses=["Opening Yojana Mitra"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("सरकारी योजना", _D), ("योजना दिखाओ", _D), ("योजना मित्र", _D),
                        ("योजनाएं", _D), ("कारीगरों के लिए योजनाएं", _F)
                    ],
                    responses=["योजना मित्र खोल रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name=BACK_INTENT,
            routes=[],
            priority=4,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("go back", _D), ("back", _D), ("previous page", _D),
                        ("return", _D), ("take me back", _I), ("please go back", _F)
                    ],
                    responses=["Going back"]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("वापस जाओ", _D), ("पीछे जाओ", _D), ("वापस", _D),
                        ("पिछला पेज", _D), ("कृपया वापस चलें", _R)
                    ],
                    responses=["वापस जा रहे हैं"]
                )
            }
        ),
        IntentMapping(
            name=HELP_INTENT,
            routes=[],
            category="query",
            priority=3,
            phrases={
                "en-US": IntentPhrases(
                    patterns=[
                        ("help", _D), ("what can i say", _I), ("show commands", _D),
                        ("voice commands", _D), ("how do i use voice navigation", _F)
                    ]
                ),
                "hi-IN": IntentPhrases(
                    patterns=[
                        ("मदद", _D), ("सहायता", _F), ("क्या कह सकते हैं", _I), ("वॉइस कमांड", _D)
                    ]
                )
            }
        )
    ]


# Phrase templates with a spoken destination, weighted by how reliably
# they signal navigation: (template, register, weight)
DESTINATION_TEMPLATES: Dict[str, List[Tuple[str, CulturalRegister, float]]] = {
    "en-US": [
        ("go to {destination}", _D, 0.95),
        ("open {destination}", _D, 0.95),
        ("show me {destination}", _D, 0.9),
        ("show {destination}", _D, 0.85),
        ("take me to {destination}", _I, 0.9),
        ("let me see {destination}", _I, 0.8),
        ("i want to see {destination}", _I, 0.8),
        ("lets go to {destination}", _I, 0.8),
        ("navigate to {destination}", _F, 0.9),
        ("please navigate to {destination}", _F, 0.9),
        ("please open {destination}", _F, 0.9),
        ("please go to {destination}", _F, 0.9),
        ("if you dont mind please show {destination}", _R, 0.85),
        ("could you please open {destination}", _R, 0.85),
        ("would you kindly show {destination}", _R, 0.85),
        ("{destination}", _D, 0.7)
    ],
    "hi-IN": [
        ("{destination} खोलो", _D, 0.95),
        ("{destination} दिखाओ", _D, 0.9),
        ("{destination} ले चलो", _D, 0.9),
        ("{destination} पर जाओ", _D, 0.9),
        ("{destination} देखना है", _I, 0.8),
        ("{destination} दिखा दो", _I, 0.8),
        ("कृपया {destination} पर जाएं", _F, 0.9),
        ("कृपया {destination} खोलें", _F, 0.9),
        ("{destination} पर जाएं", _F, 0.9),
        ("यदि आप कृपा करें तो {destination} दिखाएं", _R, 0.85),
        ("क्या आप {destination} खोल सकते हैं", _R, 0.85),
        ("{destination}", _D, 0.7)
    ]
}

# Words stripped from a captured destination before alias lookup
DESTINATION_FILLERS: Dict[str, Tuple[str, ...]] = {
    "en-US": ("the", "my", "our", "a", "page", "section", "screen"),
    "hi-IN": ("को", "का", "की", "के", "में", "पर", "पे", "तक", "मेरी", "मेरा", "पेज")
}
