"""
Voice navigation guidance.
Interactive tutorials, contextual hints and spoken-command help.
"""

import logging
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, Dict, Any, List, Set

from voice_navigation.config import get_settings, normalize_language

logger = logging.getLogger(__name__)
settings = get_settings()


class SkillLevel(str, Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"


HINT_LIMITS = {"minimal": 1, "normal": 3, "verbose": 5}


@dataclass
class TutorialStep:
    """One step of a tutorial. A step without patterns accepts any command."""
    id: str
    title: Dict[str, str]
    instruction: Dict[str, str]
    validation_patterns: List[str] = field(default_factory=list)
    hints: Dict[str, List[str]] = field(default_factory=dict)

    def accepts(self, command: str) -> bool:
        if not self.validation_patterns:
            return True
        text = command.lower()
        return any(pattern.lower() in text for pattern in self.validation_patterns)

    def to_dict(self, language: str) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": _pick(self.title, language),
            "instruction": _pick(self.instruction, language)
        }


@dataclass
class Tutorial:
    id: str
    title: Dict[str, str]
    description: Dict[str, str]
    difficulty: SkillLevel
    steps: List[TutorialStep]
    estimated_minutes: int = 3
    prerequisites: List[str] = field(default_factory=list)

    def to_dict(self, language: str) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": _pick(self.title, language),
            "description": _pick(self.description, language),
            "difficulty": self.difficulty.value,
            "estimated_minutes": self.estimated_minutes,
            "prerequisites": self.prerequisites,
            "steps": [s.to_dict(language) for s in self.steps]
        }


@dataclass
class ContextualHint:
    id: str
    trigger: str
    message: Dict[str, str]
    frequency: str = "always"  # "once", "session" or "always"
    priority: int = 5

    def to_dict(self, language: str) -> Dict[str, Any]:
        return {
            "id": self.id,
            "trigger": self.trigger,
            "message": _pick(self.message, language),
            "frequency": self.frequency,
            "priority": self.priority
        }


@dataclass
class UserProgress:
    """Tutorial progress of one user. Created on first use, kept for the process lifetime."""
    user_id: str
    completed_tutorials: List[str] = field(default_factory=list)
    current_tutorial: Optional[str] = None
    current_step: int = 0
    commands_learned: List[str] = field(default_factory=list)
    hints_shown: List[str] = field(default_factory=list)
    skill_level: SkillLevel = SkillLevel.BEGINNER
    last_activity: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "completed_tutorials": self.completed_tutorials,
            "current_tutorial": self.current_tutorial,
            "current_step": self.current_step,
            "commands_learned": self.commands_learned,
            "hints_shown": self.hints_shown,
            "skill_level": self.skill_level.value,
            "last_activity": self.last_activity.isoformat()
        }


@dataclass
class _SessionHints:
    shown: Set[str] = field(default_factory=set)
    last_used: datetime = field(default_factory=datetime.now)


@dataclass
class TutorialStepResult:
    success: bool
    message: str
    tutorial_id: Optional[str] = None
    step_index: Optional[int] = None
    step: Optional[Dict[str, Any]] = None
    completed: bool = False
    hint: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "tutorial_id": self.tutorial_id,
            "step_index": self.step_index,
            "step": self.step,
            "completed": self.completed,
            "hint": self.hint
        }


def _pick(texts: Dict[str, str], language: str) -> str:
    return texts.get(language) or texts.get("en-US", "")


# =========================
# Guidance content
# =========================

MESSAGES = {
    "en-US": {
        "started": "Starting {title}. {instruction}",
        "next_step": "Great! Next: {instruction}",
        "completed": "Congratulations! You completed {title}.",
        "no_active": 'No tutorial in progress. Say "help" to see what you can do.',
        "not_found": "Tutorial not found.",
        "prerequisites": "Please complete {prerequisites} first.",
        "already_completed": "You have already completed {title}."
    },
    "hi-IN": {
        "started": "{title} शुरू कर रहे हैं। {instruction}",
        "next_step": "बहुत बढ़िया! अगला: {instruction}",
        "completed": "बधाई हो! आपने {title} पूरा कर लिया।",
        "no_active": 'कोई ट्यूटोरियल चालू नहीं है। क्या कर सकते हैं जानने के लिए "मदद" कहें।',
        "not_found": "ट्यूटोरियल नहीं मिला।",
        "prerequisites": "कृपया पहले {prerequisites} पूरा करें।",
        "already_completed": "आप {title} पहले ही पूरा कर चुके हैं।"
    }
}


def default_tutorials() -> List[Tutorial]:
    return [
        Tutorial(
            id="basic_voice_navigation",
            title={"en-US": "Basic Voice Navigation", "hi-IN": "बुनियादी वॉयस नेवीगेशन"},
            description={
                "en-US": "Learn to move around the app with your voice.",
                "hi-IN": "अपनी आवाज़ से ऐप में घूमना सीखें।"
            },
            difficulty=SkillLevel.BEGINNER,
            estimated_minutes=3,
            steps=[
                TutorialStep(
                    id="activate_microphone",
                    title={"en-US": "Start listening", "hi-IN": "सुनना शुरू करें"},
                    instruction={
                        "en-US": "Press the microphone button and say anything.",
                        "hi-IN": "माइक्रोफ़ोन बटन दबाएं और कुछ भी बोलें।"
                    }
                ),
                TutorialStep(
                    id="first_navigation",
                    title={"en-US": "Your first command", "hi-IN": "आपका पहला कमांड"},
                    instruction={
                        "en-US": 'Say "go to dashboard".',
                        "hi-IN": '"डैशबोर्ड पर जाएं" कहें।'
                    },
                    validation_patterns=["dashboard", "डैशबोर्ड"],
                    hints={
                        "en-US": [
                            'Try saying "go to dashboard" clearly.',
                            "Include the word dashboard in your command.",
                            "Speak a little slower, close to the microphone."
                        ],
                        "hi-IN": [
                            'साफ़ आवाज़ में "डैशबोर्ड पर जाएं" कहें।',
                            "अपने कमांड में डैशबोर्ड शब्द शामिल करें।",
                            "माइक्रोफ़ोन के पास थोड़ा धीरे बोलें।"
                        ]
                    }
                ),
                TutorialStep(
                    id="ask_for_help",
                    title={"en-US": "Getting help", "hi-IN": "मदद लेना"},
                    instruction={
                        "en-US": 'Say "help" to hear the available commands.',
                        "hi-IN": 'उपलब्ध कमांड सुनने के लिए "मदद" कहें।'
                    },
                    validation_patterns=["help", "मदद", "सहायता"],
                    hints={
                        "en-US": ['Just say "help".', 'You can also say "what can I say".'],
                        "hi-IN": ['बस "मदद" कहें।', 'आप "सहायता" भी कह सकते हैं।']
                    }
                )
            ]
        ),
        Tutorial(
            id="marketplace_browsing",
            title={"en-US": "Browsing the Marketplace", "hi-IN": "बाज़ार देखना"},
            description={
                "en-US": "Open the marketplace and come back by voice.",
                "hi-IN": "आवाज़ से बाज़ार खोलें और वापस आएं।"
            },
            difficulty=SkillLevel.BEGINNER,
            estimated_minutes=2,
            steps=[
                TutorialStep(
                    id="open_marketplace",
                    title={"en-US": "Open the marketplace", "hi-IN": "बाज़ार खोलें"},
                    instruction={
                        "en-US": 'Say "open marketplace".',
                        "hi-IN": '"बाज़ार खोलो" कहें।'
                    },
                    validation_patterns=["marketplace", "market", "shop", "बाज़ार", "बाजार"],
                    hints={
                        "en-US": ['Try "open marketplace" or "shop".'],
                        "hi-IN": ['"बाज़ार खोलो" या "मार्केटप्लेस" कहकर देखें।']
                    }
                ),
                TutorialStep(
                    id="go_back",
                    title={"en-US": "Go back", "hi-IN": "वापस जाएं"},
                    instruction={
                        "en-US": 'Say "go back" to return to the previous page.',
                        "hi-IN": 'पिछले पेज पर लौटने के लिए "वापस जाओ" कहें।'
                    },
                    validation_patterns=["back", "previous", "वापस", "पीछे"],
                    hints={
                        "en-US": ['Say "go back" or "previous page".'],
                        "hi-IN": ['"वापस जाओ" या "पिछला पेज" कहें।']
                    }
                )
            ]
        ),
        Tutorial(
            id="artisan_tools",
            title={"en-US": "Artisan Tools", "hi-IN": "कारीगर टूल्स"},
            description={
                "en-US": "Reach product creation, finances and schemes by voice.",
                "hi-IN": "आवाज़ से उत्पाद निर्माण, वित्त और योजनाएं खोलें।"
            },
            difficulty=SkillLevel.INTERMEDIATE,
            estimated_minutes=4,
            prerequisites=["basic_voice_navigation"],
            steps=[
                TutorialStep(
                    id="create_product",
                    title={"en-US": "Create a product", "hi-IN": "उत्पाद बनाएं"},
                    instruction={
                        "en-US": 'Say "create product".',
                        "hi-IN": '"उत्पाद बनाओ" कहें।'
                    },
                    validation_patterns=["product", "उत्पाद", "प्रोडक्ट"],
                    hints={
                        "en-US": ['Try "create product" or "add new product".'],
                        "hi-IN": ['"उत्पाद बनाओ" या "नया उत्पाद" कहें।']
                    }
                ),
                TutorialStep(
                    id="view_finance",
                    title={"en-US": "Check your earnings", "hi-IN": "अपनी कमाई देखें"},
                    instruction={
                        "en-US": 'Say "show finances".',
                        "hi-IN": '"वित्त दिखाओ" कहें।'
                    },
                    validation_patterns=["financ", "earning", "sales", "वित्त", "कमाई"],
                    hints={
                        "en-US": ['Try "my earnings" or "open finance".'],
                        "hi-IN": ['"मेरी कमाई" या "वित्त" कहें।']
                    }
                ),
                TutorialStep(
                    id="find_schemes",
                    title={"en-US": "Find schemes", "hi-IN": "योजनाएं खोजें"},
                    instruction={
                        "en-US": 'Say "government schemes".',
                        "hi-IN": '"सरकारी योजना" कहें।'
                    },
                    validation_patterns=["scheme", "yojana", "योजना"],
                    hints={
                        "en-US": ['Try "show schemes" or "yojana mitra".'],
                        "hi-IN": ['"योजना दिखाओ" या "योजना मित्र" कहें।']
                    }
                )
            ]
        ),
        Tutorial(
            id="multilingual_navigation",
            title={"en-US": "Navigating in Hindi", "hi-IN": "हिंदी में नेवीगेशन"},
            description={
                "en-US": "Use Hindi voice commands.",
                "hi-IN": "हिंदी वॉयस कमांड का उपयोग करें।"
            },
            difficulty=SkillLevel.INTERMEDIATE,
            estimated_minutes=3,
            prerequisites=["basic_voice_navigation"],
            steps=[
                TutorialStep(
                    id="hindi_dashboard",
                    title={"en-US": "Dashboard in Hindi", "hi-IN": "हिंदी में डैशबोर्ड"},
                    instruction={
                        "en-US": 'Say "डैशबोर्ड खोलो".',
                        "hi-IN": '"डैशबोर्ड खोलो" कहें।'
                    },
                    validation_patterns=["डैशबोर्ड"],
                    hints={
                        "en-US": ['Say "डैशबोर्ड खोलो" (dashboard kholo).'],
                        "hi-IN": ['"डैशबोर्ड खोलो" कहें।']
                    }
                ),
                TutorialStep(
                    id="hindi_marketplace",
                    title={"en-US": "Marketplace in Hindi", "hi-IN": "हिंदी में बाज़ार"},
                    instruction={
                        "en-US": 'Say "बाज़ार खोलो".',
                        "hi-IN": '"बाज़ार खोलो" कहें।'
                    },
                    validation_patterns=["बाज़ार", "बाजार"],
                    hints={
                        "en-US": ['Say "बाज़ार खोलो" (bazaar kholo).'],
                        "hi-IN": ['"बाज़ार खोलो" कहें।']
                    }
                )
            ]
        )
    ]


def default_hints() -> List[ContextualHint]:
    return [
        ContextualHint(
            id="first_visit",
            trigger="page_load",
            frequency="once",
            priority=10,
            message={
                "en-US": 'You can navigate by voice. Say "help" to hear what you can say.',
                "hi-IN": 'आप आवाज़ से नेवीगेट कर सकते हैं। क्या कह सकते हैं जानने के लिए "मदद" कहें।'
            }
        ),
        ContextualHint(
            id="microphone_permission",
            trigger="microphone_denied",
            frequency="session",
            priority=9,
            message={
                "en-US": "Allow microphone access in your browser to use voice navigation.",
                "hi-IN": "वॉयस नेवीगेशन के लिए ब्राउज़र में माइक्रोफ़ोन की अनुमति दें।"
            }
        ),
        ContextualHint(
            id="speech_not_recognized",
            trigger="low_confidence",
            frequency="always",
            priority=8,
            message={
                "en-US": 'Speak clearly, close to the microphone. Short commands like "go to dashboard" work best.',
                "hi-IN": 'माइक्रोफ़ोन के पास साफ़ बोलें। "डैशबोर्ड पर जाओ" जैसे छोटे कमांड सबसे अच्छे हैं।'
            }
        ),
        ContextualHint(
            id="navigation_shortcut",
            trigger="page_load",
            frequency="session",
            priority=5,
            message={
                "en-US": 'Say "go back" to return to the previous page.',
                "hi-IN": 'पिछले पेज पर लौटने के लिए "वापस जाओ" कहें।'
            }
        ),
        ContextualHint(
            id="language_switch",
            trigger="page_load",
            frequency="once",
            priority=3,
            message={
                "en-US": "Voice navigation also understands Hindi commands.",
                "hi-IN": "वॉयस नेवीगेशन अंग्रेज़ी कमांड भी समझता है।"
            }
        )
    ]


HELP_TOPICS = {
    "getting_started": {
        "keywords": ["start", "begin", "how", "use", "शुरू", "कैसे"],
        "en-US": {
            "title": "Getting started",
            "content": "Press the microphone button, then say where you want to go, for example \"go to dashboard\"."
        },
        "hi-IN": {
            "title": "शुरुआत",
            "content": "माइक्रोफ़ोन बटन दबाएं, फिर बोलें कि कहां जाना है, जैसे \"डैशबोर्ड पर जाएं\"।"
        }
    },
    "voice_commands": {
        "keywords": ["command", "say", "navigate", "कमांड", "बोल"],
        "en-US": {
            "title": "Voice commands",
            "content": "Say \"go to\" or \"open\" followed by a page name. Say \"go back\" to return."
        },
        "hi-IN": {
            "title": "वॉयस कमांड",
            "content": "पेज के नाम के बाद \"खोलो\" या \"पर जाओ\" कहें। लौटने के लिए \"वापस जाओ\" कहें।"
        }
    },
    "troubleshooting": {
        "keywords": ["problem", "not working", "error", "microphone", "समस्या", "माइक्रोफ़ोन"],
        "en-US": {
            "title": "Troubleshooting",
            "content": "Check microphone permission, reduce background noise and speak close to the device."
        },
        "hi-IN": {
            "title": "समस्या निवारण",
            "content": "माइक्रोफ़ोन की अनुमति जांचें, शोर कम करें और डिवाइस के पास बोलें।"
        }
    }
}

COMMANDS = {
    "en-US": [
        {"command": "go to dashboard", "description": "Open your dashboard", "pages": ["*"]},
        {"command": "open marketplace", "description": "Browse products", "pages": ["*"]},
        {"command": "open profile", "description": "Manage your profile", "pages": ["/dashboard", "/marketplace"]},
        {"command": "create product", "description": "Start a new product listing", "pages": ["/dashboard"]},
        {"command": "show finances", "description": "See your sales and earnings", "pages": ["/dashboard"]},
        {"command": "show trends", "description": "Discover trending products", "pages": ["/dashboard", "/marketplace"]},
        {"command": "government schemes", "description": "Find schemes for artisans", "pages": ["/dashboard"]},
        {"command": "go back", "description": "Return to the previous page", "pages": ["*"]},
        {"command": "help", "description": "Hear the available commands", "pages": ["*"]}
    ],
    "hi-IN": [
        {"command": "डैशबोर्ड पर जाओ", "description": "अपना डैशबोर्ड खोलें", "pages": ["*"]},
        {"command": "बाज़ार खोलो", "description": "उत्पाद देखें", "pages": ["*"]},
        {"command": "प्रोफाइल खोलो", "description": "अपनी प्रोफाइल प्रबंधित करें", "pages": ["/dashboard", "/marketplace"]},
        {"command": "उत्पाद बनाओ", "description": "नई उत्पाद सूची शुरू करें", "pages": ["/dashboard"]},
        {"command": "वित्त दिखाओ", "description": "अपनी बिक्री और कमाई देखें", "pages": ["/dashboard"]},
        {"command": "ट्रेंड दिखाओ", "description": "ट्रेंडिंग उत्पाद देखें", "pages": ["/dashboard", "/marketplace"]},
        {"command": "सरकारी योजना", "description": "कारीगरों के लिए योजनाएं खोजें", "pages": ["/dashboard"]},
        {"command": "वापस जाओ", "description": "पिछले पेज पर लौटें", "pages": ["*"]},
        {"command": "मदद", "description": "उपलब्ध कमांड सुनें", "pages": ["*"]}
    ]
}

ERROR_SUGGESTIONS = {
    "not_found": ["help", "go to dashboard", "open marketplace"],
    "access_denied": ["go to dashboard", "open profile", "help"],
    "network_error": ["go back", "help"],
    "service_unavailable": ["help"]
}

TIPS = {
    "en-US": [
        "Speak naturally at a normal pace.",
        "Use short commands with the page name.",
        "Switch language in settings to use Hindi commands."
    ],
    "hi-IN": [
        "सामान्य गति से स्वाभाविक रूप से बोलें।",
        "पेज के नाम के साथ छोटे कमांड का उपयोग करें।",
        "अंग्रेज़ी कमांड के लिए सेटिंग्स में भाषा बदलें।"
    ]
}

_SKILL_ORDER = [SkillLevel.BEGINNER, SkillLevel.INTERMEDIATE, SkillLevel.ADVANCED]


class GuidanceService:
    """
    Tutorials, contextual hints and command help for voice navigation.

    Hint selection uses the injected random generator, so a seeded
    `random.Random` makes it reproducible.
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        hint_frequency: Optional[str] = None,
        tutorials: Optional[List[Tutorial]] = None,
        hints: Optional[List[ContextualHint]] = None,
        session_timeout_minutes: Optional[float] = None,
        max_sessions: Optional[int] = None
    ):
        self._rng = rng or random.Random()
        self.hint_frequency = hint_frequency or settings.HINT_FREQUENCY
        self._tutorials: Dict[str, Tutorial] = {t.id: t for t in (tutorials or default_tutorials())}
        self._hints: List[ContextualHint] = list(hints or default_hints())
        self._progress: Dict[str, UserProgress] = {}
        self._session_hints: Dict[str, _SessionHints] = {}
        self.session_timeout = timedelta(minutes=(
            settings.SESSION_TIMEOUT_MINUTES if session_timeout_minutes is None else session_timeout_minutes
        ))
        self.max_sessions = settings.MAX_SESSIONS if max_sessions is None else max_sessions

    # =========================
    # Progress
    # =========================

    def get_progress(self, user_id: str) -> UserProgress:
        progress = self._progress.get(user_id)
        if progress is None:
            progress = UserProgress(user_id=user_id)
            self._progress[user_id] = progress
            logger.info(f"Created guidance progress for {user_id}")
        return progress

    @staticmethod
    def calculate_skill_level(completed: int) -> SkillLevel:
        if completed >= 3:
            return SkillLevel.ADVANCED
        if completed >= 1:
            return SkillLevel.INTERMEDIATE
        return SkillLevel.BEGINNER

    # =========================
    # Tutorials
    # =========================

    def get_tutorial(self, tutorial_id: str) -> Optional[Tutorial]:
        return self._tutorials.get(tutorial_id)

    def get_available_tutorials(
        self,
        user_id: str,
        skill_level: Optional[SkillLevel] = None
    ) -> List[Tutorial]:
        """Uncompleted tutorials at the user's level whose prerequisites are done."""
        progress = self.get_progress(user_id)
        level = skill_level or progress.skill_level

        available = []
        for tutorial in self._tutorials.values():
            if level != SkillLevel.ADVANCED and tutorial.difficulty != level:
                continue
            if tutorial.id in progress.completed_tutorials:
                continue
            if any(p not in progress.completed_tutorials for p in tutorial.prerequisites):
                continue
            available.append(tutorial)
        return available

    def start_tutorial(self, user_id: str, tutorial_id: str, language: str = "en-US") -> TutorialStepResult:
        language = normalize_language(language)
        messages = MESSAGES.get(language, MESSAGES["en-US"])
        tutorial = self._tutorials.get(tutorial_id)
        if tutorial is None:
            return TutorialStepResult(success=False, message=messages["not_found"], tutorial_id=tutorial_id)

        progress = self.get_progress(user_id)
        missing = [p for p in tutorial.prerequisites if p not in progress.completed_tutorials]
        if missing:
            names = ", ".join(
                _pick(self._tutorials[p].title, language) if p in self._tutorials else p for p in missing
            )
            return TutorialStepResult(
                success=False,
                message=messages["prerequisites"].format(prerequisites=names),
                tutorial_id=tutorial_id
            )

        progress.current_tutorial = tutorial_id
        progress.current_step = 0
        progress.last_activity = datetime.now()

        first = tutorial.steps[0]
        logger.info(f"User {user_id} started tutorial {tutorial_id}")
        return TutorialStepResult(
            success=True,
            message=messages["started"].format(
                title=_pick(tutorial.title, language),
                instruction=_pick(first.instruction, language)
            ),
            tutorial_id=tutorial_id,
            step_index=0,
            step=first.to_dict(language)
        )

    def process_tutorial_step(self, user_id: str, command: str, language: str = "en-US") -> TutorialStepResult:
        """Check a spoken command against the active step and advance on success."""
        language = normalize_language(language)
        messages = MESSAGES.get(language, MESSAGES["en-US"])
        progress = self.get_progress(user_id)
        progress.last_activity = datetime.now()

        tutorial = self._tutorials.get(progress.current_tutorial or "")
        if tutorial is None:
            return TutorialStepResult(success=False, message=messages["no_active"])

        index = progress.current_step
        step = tutorial.steps[index]

        if not step.accepts(command):
            hint = self._pick_hint(step, language)
            progress.hints_shown.append(f"{tutorial.id}:{step.id}")
            return TutorialStepResult(
                success=False,
                message=hint or _pick(step.instruction, language),
                tutorial_id=tutorial.id,
                step_index=index,
                step=step.to_dict(language),
                hint=hint
            )

        if command and command not in progress.commands_learned:
            progress.commands_learned.append(command)

        if index + 1 >= len(tutorial.steps):
            if tutorial.id not in progress.completed_tutorials:
                progress.completed_tutorials.append(tutorial.id)
            progress.current_tutorial = None
            progress.current_step = 0
            progress.skill_level = self.calculate_skill_level(len(progress.completed_tutorials))
            logger.info(f"User {user_id} completed tutorial {tutorial.id} (skill: {progress.skill_level.value})")
            return TutorialStepResult(
                success=True,
                message=messages["completed"].format(title=_pick(tutorial.title, language)),
                tutorial_id=tutorial.id,
                step_index=index,
                completed=True
            )

        progress.current_step = index + 1
        next_step = tutorial.steps[index + 1]
        return TutorialStepResult(
            success=True,
            message=messages["next_step"].format(instruction=_pick(next_step.instruction, language)),
            tutorial_id=tutorial.id,
            step_index=index + 1,
            step=next_step.to_dict(language)
        )

    def _pick_hint(self, step: TutorialStep, language: str) -> Optional[str]:
        pool = step.hints.get(language) or step.hints.get("en-US") or []
        if not pool:
            return None
        return self._rng.choice(pool)

    # =========================
    # Contextual hints
    # =========================

    def get_contextual_hints(
        self,
        user_id: str,
        trigger: Optional[str] = None,
        session_id: Optional[str] = None,
        language: str = "en-US"
    ) -> List[Dict[str, Any]]:
        """Hints for a trigger, respecting frequency and the verbosity limit."""
        language = normalize_language(language)
        progress = self.get_progress(user_id)
        session_key = f"{user_id}:{session_id or 'default'}"
        seen_in_session = self._session_hint_set(session_key)
        limit = HINT_LIMITS.get(self.hint_frequency, HINT_LIMITS["normal"])

        selected = []
        for hint in sorted(self._hints, key=lambda h: -h.priority):
            if trigger is not None and hint.trigger != trigger:
                continue
            if hint.frequency == "once" and hint.id in progress.hints_shown:
                continue
            if hint.frequency == "session" and hint.id in seen_in_session:
                continue
            selected.append(hint)
            if len(selected) >= limit:
                break

        for hint in selected:
            if hint.frequency == "once":
                progress.hints_shown.append(hint.id)
            elif hint.frequency == "session":
                seen_in_session.add(hint.id)

        return [h.to_dict(language) for h in selected]

    def _session_hint_set(self, session_key: str) -> Set[str]:
        entry = self._session_hints.get(session_key)
        if entry is None:
            if len(self._session_hints) >= self.max_sessions:
                self.cleanup_expired()
            if len(self._session_hints) >= self.max_sessions:
                oldest = min(self._session_hints, key=lambda k: self._session_hints[k].last_used)
                del self._session_hints[oldest]
            entry = _SessionHints()
            self._session_hints[session_key] = entry
        entry.last_used = datetime.now()
        return entry.shown

    def cleanup_expired(self) -> int:
        """Forget per-session hint flags idle longer than the session timeout."""
        cutoff = datetime.now() - self.session_timeout
        expired = [k for k, entry in self._session_hints.items() if entry.last_used < cutoff]
        for key in expired:
            del self._session_hints[key]
        if expired:
            logger.info(f"Cleaned up hint state for {len(expired)} expired sessions")
        return len(expired)

    # =========================
    # Help
    # =========================

    def get_help(self, query: Optional[str] = None, language: str = "en-US") -> Dict[str, Any]:
        language = normalize_language(language)
        topics = []
        needle = (query or "").lower()
        for topic_id, topic in HELP_TOPICS.items():
            if needle and not any(k in needle for k in topic["keywords"]) and topic_id.replace("_", " ") not in needle:
                continue
            text = topic.get(language) or topic["en-US"]
            topics.append({"id": topic_id, "title": text["title"], "content": text["content"]})

        if needle and not topics:
            topics = [
                {"id": tid, **(t.get(language) or t["en-US"])} for tid, t in HELP_TOPICS.items()
            ]

        return {
            "language": language,
            "query": query,
            "topics": topics,
            "commands": [
                {"command": c["command"], "description": c["description"]}
                for c in COMMANDS.get(language, COMMANDS["en-US"])
            ],
            "tips": TIPS.get(language, TIPS["en-US"]),
            "suggestions": self.get_command_suggestions(language=language)
        }

    def get_command_suggestions(
        self,
        current_page: Optional[str] = None,
        user_input: Optional[str] = None,
        error_type: Optional[str] = None,
        language: str = "en-US"
    ) -> List[str]:
        """At most five commands suited to the page, input or error."""
        language = normalize_language(language)
        commands = COMMANDS.get(language, COMMANDS["en-US"])

        if current_page:
            suggestions = [
                c["command"] for c in commands
                if c.get("pages") and ("*" in c["pages"] or current_page in c["pages"])
            ]
        elif user_input:
            words = set(user_input.lower().split())
            scored = [
                (len(words & set(c["command"].lower().split())), i, c["command"])
                for i, c in enumerate(commands)
            ]
            suggestions = [cmd for score, _, cmd in sorted(scored, key=lambda s: (-s[0], s[1])) if score > 0]
            if not suggestions:
                suggestions = [c["command"] for c in commands]
        elif error_type:
            english = ERROR_SUGGESTIONS.get(error_type, ["help"])
            if language == "en-US":
                suggestions = list(english)
            else:
                # Map English suggestions onto the same command slot in this language
                index = {c["command"]: i for i, c in enumerate(COMMANDS["en-US"])}
                suggestions = [commands[index[s]]["command"] for s in english if s in index and index[s] < len(commands)]
        else:
            suggestions = [c["command"] for c in commands]

        return suggestions[:5]
