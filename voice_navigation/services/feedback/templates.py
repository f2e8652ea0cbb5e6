"""
Feedback templates for multilingual voice navigation.
Every language carries the same template ids and variables.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


@dataclass
class FeedbackTemplate:
    """A localized feedback sentence with {variable} slots."""
    id: str
    type: str  # "confirmation", "error", "navigation", "help" or "retry"
    language: str
    template: str
    variables: List[str] = field(default_factory=list)


# id -> (type, variables)
TEMPLATE_DEFINITIONS: Dict[str, tuple] = {
    "nav_confirmation": ("confirmation", ["destination"]),
    "nav_confirmation_prompt": ("confirmation", ["destination"]),
    "nav_success": ("confirmation", ["destination"]),
    "nav_navigating": ("navigation", ["destination"]),
    "nav_cancelled": ("navigation", []),
    "nav_back_failed": ("error", []),
    "nav_error_not_found": ("error", ["command"]),
    "nav_error_access_denied": ("error", ["destination"]),
    "nav_error_general": ("error", ["error"]),
    "nav_error_network": ("error", []),
    "nav_error_service_unavailable": ("error", []),
    "nav_error_with_suggestions": ("error", ["error", "suggestions"]),
    "nav_retry_prompt": ("retry", ["failedCommand", "retryMessage"]),
    "nav_retry_final_attempt": ("retry", ["failedCommand", "suggestions"]),
    "nav_retry_exhausted": ("retry", ["failedCommand"]),
    "nav_help_commands": ("help", ["availableCommands"]),
    "nav_help_examples": ("help", []),
    "nav_help_admin_commands": ("help", ["availableCommands"]),
    "nav_did_you_mean": ("navigation", ["suggestions"])
}

TEMPLATE_TEXTS: Dict[str, Dict[str, str]] = {
    "en-US": {
        "nav_confirmation": "Navigating to {destination}",
        "nav_confirmation_prompt": "Do you want me to open {destination}? Please confirm.",
        "nav_success": "Successfully navigated to {destination}",
        "nav_navigating": "Opening {destination}",
        "nav_cancelled": "Okay, navigation cancelled.",
        "nav_back_failed": "There is no previous page to go back to.",
        "nav_error_not_found": 'Sorry, I could not find "{command}". Please try a different command.',
        "nav_error_access_denied": (
            "Access denied to {destination}. You may not have permission to view this page."
        ),
        "nav_error_general": "Navigation error: {error}. Please try again.",
        "nav_error_network": (
            "Network connection issue. Please check your internet connection and try again."
        ),
        "nav_error_service_unavailable": (
            "Voice navigation service is temporarily unavailable. "
            "Please use manual navigation or try again later."
        ),
        "nav_error_with_suggestions": "Navigation error: {error}. {suggestions}",
        "nav_retry_prompt": (
            "I didn't catch that. {retryMessage} "
            "Please try speaking more clearly or use a different command."
        ),
        "nav_retry_final_attempt": (
            "This is your final attempt. Please try one of these commands: {suggestions}"
        ),
        "nav_retry_exhausted": (
            'I still could not understand "{failedCommand}". '
            'Please use the menu to navigate, or say "help" to hear the commands.'
        ),
        "nav_help_commands": (
            'You can say commands like "go to dashboard", "open profile", '
            '"show marketplace", or "go back". {availableCommands}'
        ),
        "nav_help_examples": (
            'Try saying: "Take me to my profile", "Show me the marketplace", or "Go to dashboard".'
        ),
        "nav_help_admin_commands": (
            "As an admin, you have access to additional commands: {availableCommands}. "
            "You can also use standard navigation commands."
        ),
        "nav_did_you_mean": "Did you mean something else? {suggestions}"
    },
    "hi-IN": {
        "nav_confirmation": "{destination} पर जा रहे हैं",
        "nav_confirmation_prompt": "क्या आप {destination} खोलना चाहते हैं? कृपया पुष्टि करें।",
        "nav_success": "{destination} पर सफलतापूर्वक पहुंच गए",
        "nav_navigating": "{destination} खोल रहे हैं",
        "nav_cancelled": "ठीक है, नेवीगेशन रद्द कर दिया गया।",
        "nav_back_failed": "वापस जाने के लिए कोई पिछला पेज नहीं है।",
        "nav_error_not_found": 'माफ करें, मुझे "{command}" नहीं मिला। कृपया दूसरा कमांड आज़माएं।',
        "nav_error_access_denied": (
            "{destination} तक पहुंच अस्वीकृत। आपको इस पृष्ठ को देखने की अनुमति नहीं हो सकती।"
        ),
        "nav_error_general": "नेवीगेशन त्रुटि: {error}। कृपया पुनः प्रयास करें।",
        "nav_error_network": (
            "नेटवर्क कनेक्शन की समस्या। कृपया अपना इंटरनेट कनेक्शन जांचें और पुनः प्रयास करें।"
        ),
        "nav_error_service_unavailable": (
            "वॉयस नेवीगेशन सेवा अस्थायी रूप से अनुपलब्ध है। "
            "कृपया मैन्युअल नेवीगेशन का उपयोग करें या बाद में पुनः प्रयास करें।"
        ),
        "nav_error_with_suggestions": "नेवीगेशन त्रुटि: {error}। {suggestions}",
        "nav_retry_prompt": (
            "मुझे समझ नहीं आया। {retryMessage} "
            "कृपया अधिक स्पष्ट रूप से बोलें या दूसरा कमांड उपयोग करें।"
        ),
        "nav_retry_final_attempt": (
            "यह आपका अंतिम प्रयास है। कृपया इनमें से कोई कमांड आज़माएं: {suggestions}"
        ),
        "nav_retry_exhausted": (
            'मैं अभी भी "{failedCommand}" नहीं समझ पाया। '
            'कृपया मेनू से नेवीगेट करें, या कमांड सुनने के लिए "मदद" कहें।'
        ),
        "nav_help_commands": (
            'आप "डैशबोर्ड पर जाएं", "प्रोफाइल खोलें", "बाज़ार दिखाएं", '
            'या "वापस जाएं" जैसे कमांड कह सकते हैं। {availableCommands}'
        ),
        "nav_help_examples": (
            'कहने की कोशिश करें: "मुझे मेरे प्रोफाइल पर ले जाएं", "मुझे बाज़ार दिखाएं", या "डैशबोर्ड पर जाएं"।'
        ),
        "nav_help_admin_commands": (
            "एक एडमिन के रूप में, आपके पास अतिरिक्त कमांड्स तक पहुंच है: {availableCommands}। "
            "आप मानक नेवीगेशन कमांड्स का भी उपयोग कर सकते हैं।"
        ),
        "nav_did_you_mean": "क्या आपका मतलब कुछ और था? {suggestions}"
    }
}

FALLBACK_TEXTS: Dict[str, Dict[str, str]] = {
    "en-US": {
        "confirmation": "Navigation confirmed",
        "error": "Navigation error occurred",
        "navigation": "Navigating",
        "help": "Voice navigation help",
        "retry": "Please try again"
    },
    "hi-IN": {
        "confirmation": "नेवीगेशन की पुष्टि",
        "error": "नेवीगेशन त्रुटि हुई",
        "navigation": "नेवीगेट कर रहे हैं",
        "help": "वॉयस नेवीगेशन सहायता",
        "retry": "कृपया पुनः प्रयास करें"
    }
}

# Attempt number -> context sentence
RETRY_CONTEXT_MESSAGES: Dict[str, Dict[int, str]] = {
    "en-US": {
        2: "This is your second attempt.",
        3: "This is your third attempt. Please speak clearly.",
        4: "Final attempt. Please try a different command if this doesn't work."
    },
    "hi-IN": {
        2: "यह आपका दूसरा प्रयास है।",
        3: "यह आपका तीसरा प्रयास है। कृपया स्पष्ट रूप से बोलें।",
        4: "अंतिम प्रयास। यदि यह काम नहीं करता तो कृपया दूसरा कमांड आज़माएं।"
    }
}

RETRY_MESSAGES: Dict[str, List[str]] = {
    "en-US": [
        "Let's try that again.",
        "Please try once more.",
        "One more time, please speak clearly.",
        "Final attempt, please use a simple command."
    ],
    "hi-IN": [
        "चलिए फिर से कोशिश करते हैं।",
        "कृपया एक बार और कोशिश करें।",
        "एक बार और, कृपया स्पष्ट रूप से बोलें।",
        "अंतिम प्रयास, कृपया सरल कमांड का उपयोग करें।"
    ]
}

SUGGESTION_INTROS = {"en-US": "You can try saying:", "hi-IN": "आप कह सकते हैं:"}
SUGGESTION_CONNECTORS = {"en-US": "or", "hi-IN": "या"}
COMMANDS_INTROS = {"en-US": "Available commands:", "hi-IN": "उपलब्ध कमांड्स:"}
MORE_TEXTS = {"en-US": "and more", "hi-IN": "और भी"}

# Speaking rate (percent) and pitch (Hz) adjustments per feedback type
PROSODY_ADJUSTMENTS: Dict[str, Dict[str, str]] = {
    "confirmation": {"rate": "+10%", "pitch": "+2Hz"},
    "error": {"rate": "-10%", "pitch": "-1Hz"},
    "navigation": {"rate": "+0%", "pitch": "+0Hz"},
    "help": {"rate": "-5%", "pitch": "+1Hz"},
    "retry": {"rate": "-10%", "pitch": "+0Hz"}
}


class TemplateRegistry:
    """Lookup of feedback templates by id and language."""

    def __init__(self, default_language: str = "en-US"):
        self._default_language = default_language
        self._templates: Dict[str, Dict[str, FeedbackTemplate]] = {}
        for language, texts in TEMPLATE_TEXTS.items():
            for template_id, text in texts.items():
                template_type, variables = TEMPLATE_DEFINITIONS[template_id]
                self.add_template(FeedbackTemplate(
                    id=template_id,
                    type=template_type,
                    language=language,
                    template=text,
                    variables=list(variables)
                ))

    def add_template(self, template: FeedbackTemplate):
        self._templates.setdefault(template.language, {})[template.id] = template

    def get_template(
        self,
        template_id: str,
        language: str,
        template_type: Optional[str] = None
    ) -> Optional[FeedbackTemplate]:
        """Template in the language, else the default language; None if unknown."""
        for lang in (language, self._default_language):
            template = self._templates.get(lang, {}).get(template_id)
            if template and (template_type is None or template.type == template_type):
                return template
        return None

    def get_languages(self) -> List[str]:
        return sorted(self._templates.keys())

    def get_template_ids(self, language: str) -> List[str]:
        return sorted(self._templates.get(language, {}).keys())
