"""
Unified logging system for the EPUB translator
Provides consistent console (and optional file) logging for every component
"""
import sys
import os
import json
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, Callable
from enum import Enum


class LogLevel(Enum):
    """Log levels with priority values"""
    DEBUG = 10
    INFO = 20
    WARNING = 30
    ERROR = 40
    CRITICAL = 50


class LogType(Enum):
    """Types of log messages for special handling"""
    GENERAL = "general"
    LLM_REQUEST = "llm_request"
    LLM_RESPONSE = "llm_response"
    TOKEN_USAGE = "token_usage"
    PROGRESS = "progress"
    CHUNK_INFO = "chunk_info"
    MEMORY = "memory"
    RETRY = "retry"
    FILE_OPERATION = "file_operation"
    TRANSLATION_START = "translation_start"
    TRANSLATION_END = "translation_end"
    ERROR_DETAIL = "error_detail"


class Colors:
    """ANSI color codes for terminal output"""
    NO_COLOR = os.environ.get('NO_COLOR') is not None or not sys.stdout.isatty()

    YELLOW = '' if NO_COLOR else '\033[93m'
    WHITE = '' if NO_COLOR else '\033[97m'
    GRAY = '' if NO_COLOR else '\033[90m'
    ORANGE = '' if NO_COLOR else '\033[38;5;214m'
    GREEN = '' if NO_COLOR else '\033[92m'
    RED = '' if NO_COLOR else '\033[91m'
    ENDC = '' if NO_COLOR else '\033[0m'

    @classmethod
    def disable(cls):
        """Disable all colors"""
        cls.YELLOW = cls.WHITE = cls.GRAY = cls.ORANGE = cls.GREEN = cls.RED = cls.ENDC = ''


class UnifiedLogger:
    """
    Unified logger that provides consistent logging across all components
    """

    def __init__(self,
                 name: str = "epub_translator",
                 console_output: bool = True,
                 enable_colors: bool = True,
                 min_level: LogLevel = LogLevel.INFO,
                 log_directory: Optional[str] = None,
                 storage_callback: Optional[Callable] = None):
        """
        Initialize the unified logger

        Args:
            name: Logger name/identifier
            console_output: Whether to output to console
            enable_colors: Whether to use colored output
            min_level: Minimum log level to display
            log_directory: When set, entries are also appended to a daily log file there
            storage_callback: Callback receiving every structured log entry
        """
        self.name = name
        self.console_output = console_output
        self.enable_colors = enable_colors
        self.min_level = min_level
        self.log_directory = log_directory
        self.storage_callback = storage_callback

        self.translation_state = {
            'source_lang': '',
            'target_lang': '',
            'provider': '',
            'total_paragraphs': 0,
            'start_time': None,
            'in_progress': False
        }

        if not enable_colors:
            Colors.disable()

    def _format_timestamp(self) -> str:
        return datetime.now().strftime("%H:%M:%S")

    def _format_console_message(self, level: LogLevel, message: str,
                                log_type: LogType = LogType.GENERAL,
                                data: Optional[Dict[str, Any]] = None) -> str:
        """Format message for console output"""
        timestamp = self._format_timestamp()

        level_colors = {
            LogLevel.DEBUG: Colors.GRAY,
            LogLevel.INFO: Colors.WHITE,
            LogLevel.WARNING: Colors.YELLOW,
            LogLevel.ERROR: Colors.RED,
            LogLevel.CRITICAL: Colors.RED
        }
        color = level_colors.get(level, Colors.WHITE)

        if log_type == LogType.LLM_REQUEST:
            return self._format_llm_request(data or {})
        elif log_type == LogType.LLM_RESPONSE:
            return self._format_llm_response(data or {})
        elif log_type == LogType.TRANSLATION_START:
            return self._format_translation_start(message, data or {})
        elif log_type == LogType.TRANSLATION_END:
            return self._format_translation_end(message, data or {})
        elif log_type == LogType.ERROR_DETAIL:
            return self._format_error_detail(message, data or {})
        elif log_type == LogType.TOKEN_USAGE:
            return self._format_token_usage(message, data or {})
        else:
            level_str = f"[{level.name}] " if level != LogLevel.INFO else ""
            return f"{color}[{timestamp}] {level_str}{message}{Colors.ENDC}"

    def _format_llm_request(self, data: Dict[str, Any]) -> str:
        """Format LLM request with full details"""
        output = [f"{Colors.YELLOW}{'=' * 80}{Colors.ENDC}",
                  f"{Colors.YELLOW}[{self._format_timestamp()}] SENDING TO LLM{Colors.ENDC}"]

        if 'provider' in data:
            output.append(f"{Colors.GRAY}Provider: {data['provider']}{Colors.ENDC}")
        if 'model' in data:
            output.append(f"{Colors.GRAY}Model: {data['model']}{Colors.ENDC}")

        output.append(f"\n{Colors.ORANGE}RAW PROMPT (INPUT):{Colors.ENDC}")
        if data.get('system_prompt'):
            output.append(f"{Colors.GRAY}[SYSTEM]{Colors.ENDC}")
            output.append(f"{Colors.ORANGE}{data['system_prompt']}{Colors.ENDC}")
        if data.get('user_prompt'):
            output.append(f"{Colors.GRAY}[USER]{Colors.ENDC}")
            output.append(f"{Colors.ORANGE}{data['user_prompt']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_llm_response(self, data: Dict[str, Any]) -> str:
        """Format LLM response with full details"""
        output = [f"{Colors.GREEN}[{self._format_timestamp()}] LLM RESPONSE (OUTPUT){Colors.ENDC}"]

        if 'execution_time' in data:
            output.append(f"{Colors.GRAY}Execution time: {data['execution_time']:.2f} seconds{Colors.ENDC}")

        # Full response only in debug mode
        if self.min_level == LogLevel.DEBUG:
            output.append(f"\n{Colors.GREEN}RAW RESPONSE:{Colors.ENDC}")
            output.append(f"{Colors.GREEN}{data.get('response', '')}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_translation_start(self, message: str, data: Dict[str, Any]) -> str:
        """Format translation start message"""
        self.translation_state.update({
            'source_lang': data.get('source_lang', 'Unknown'),
            'target_lang': data.get('target_lang', 'Unknown'),
            'provider': data.get('provider', 'Unknown'),
            'total_paragraphs': data.get('total_paragraphs', 0),
            'start_time': datetime.now(),
            'in_progress': True
        })

        output = [f"{Colors.YELLOW}TRANSLATION STARTED{Colors.ENDC}"]
        if message:
            output.append(f"{Colors.WHITE}{message}{Colors.ENDC}")
        output.append(f"{Colors.WHITE}Languages: {self.translation_state['source_lang']} → "
                      f"{self.translation_state['target_lang']}{Colors.ENDC}")
        output.append(f"{Colors.GRAY}Provider: {self.translation_state['provider']}{Colors.ENDC}")
        if self.translation_state['total_paragraphs'] > 0:
            output.append(f"{Colors.WHITE}Total Paragraphs: "
                          f"{self.translation_state['total_paragraphs']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_translation_end(self, message: str, data: Dict[str, Any]) -> str:
        """Format translation end message"""
        output = [f"\n{Colors.WHITE}TRANSLATION COMPLETE{Colors.ENDC}"]

        if self.translation_state['start_time']:
            duration = datetime.now() - self.translation_state['start_time']
            output.append(f"{Colors.GRAY}Duration: {duration}{Colors.ENDC}")

        if 'output_file' in data:
            output.append(f"{Colors.WHITE}Output saved to: {data['output_file']}{Colors.ENDC}")

        if 'stats' in data:
            stats = data['stats']
            output.append(f"{Colors.WHITE}Translated paragraphs: {stats.get('translated', 0)}{Colors.ENDC}")
            if stats.get('fallback', 0) > 0:
                output.append(f"{Colors.YELLOW}Fallback paragraphs: {stats['fallback']}{Colors.ENDC}")

        self.translation_state['in_progress'] = False
        return '\n'.join(output)

    def _format_error_detail(self, message: str, data: Dict[str, Any]) -> str:
        """Format detailed error message"""
        output = [f"{Colors.RED}[{self._format_timestamp()}] ERROR: {message}{Colors.ENDC}"]

        if 'details' in data:
            output.append(f"{Colors.RED}Details: {data['details']}{Colors.ENDC}")
        if 'paragraph' in data:
            output.append(f"{Colors.RED}Paragraph: {data['paragraph']}{Colors.ENDC}")

        return '\n'.join(output)

    def _format_token_usage(self, message: str, data: Dict[str, Any]) -> str:
        """Format token usage reported by the provider"""
        prompt_tokens = data.get('prompt_tokens', 0)
        completion_tokens = data.get('completion_tokens', 0)
        cost = data.get('cost', 0.0)
        return (f"{Colors.GRAY}[TOKENS] prompt={prompt_tokens}, completion={completion_tokens}, "
                f"total={prompt_tokens + completion_tokens}, cost=${cost:.4f}{Colors.ENDC}")

    def _write_to_file(self, log_entry: Dict[str, Any]):
        """Append a structured entry to today's log file"""
        directory = Path(self.log_directory)
        directory.mkdir(parents=True, exist_ok=True)
        log_file = directory / f"{self.name}-{datetime.now().strftime('%Y%m%d')}.log"
        with open(log_file, 'a', encoding='utf-8') as f:
            f.write(json.dumps(log_entry, ensure_ascii=False, default=str) + '\n')

    def log(self, level: LogLevel, message: str,
            log_type: LogType = LogType.GENERAL,
            data: Optional[Dict[str, Any]] = None):
        """
        Main logging method

        Args:
            level: Log level
            message: Log message
            log_type: Type of log for special formatting
            data: Additional data for the log entry
        """
        if level.value < self.min_level.value:
            return

        if self.console_output:
            try:
                console_msg = self._format_console_message(level, message, log_type, data)
                if console_msg:
                    print(console_msg, flush=True)
            except UnicodeEncodeError:
                # Terminals with a legacy codepage
                safe_message = message.encode('ascii', 'replace').decode('ascii')
                print(f"[{self._format_timestamp()}] {safe_message}", flush=True)

        log_entry = {
            'timestamp': datetime.now().isoformat(),
            'level': level.name,
            'type': log_type.value,
            'message': message,
            'data': data or {}
        }

        if self.log_directory:
            try:
                self._write_to_file(log_entry)
            except OSError as e:
                print(f"{Colors.RED}[LOG] Could not write log file: {e}{Colors.ENDC}", flush=True)

        if self.storage_callback:
            self.storage_callback(log_entry)

    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.ERROR, message, log_type, data)

    def critical(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
        self.log(LogLevel.CRITICAL, message, log_type, data)


# Global logger instance
_global_logger = None


def get_logger(name: str = "epub_translator", **kwargs) -> UnifiedLogger:
    """
    Get or create the global logger instance

    Args:
        name: Logger name
        **kwargs: Additional arguments for UnifiedLogger

    Returns:
        UnifiedLogger instance
    """
    global _global_logger
    if _global_logger is None:
        _global_logger = UnifiedLogger(name, **kwargs)
    elif 'storage_callback' in kwargs:
        _global_logger.storage_callback = kwargs['storage_callback']
    return _global_logger


def setup_cli_logger(enable_colors: bool = True) -> UnifiedLogger:
    """Setup logger for CLI usage"""
    # Import here to avoid circular dependencies
    from epub_translator.config import DEBUG_MODE, LOG_LEVEL, FILE_LOGGING, LOG_DIRECTORY

    global _global_logger
    min_level = LogLevel.DEBUG if DEBUG_MODE else LogLevel.__members__.get(LOG_LEVEL, LogLevel.INFO)
    _global_logger = UnifiedLogger(
        console_output=True,
        enable_colors=enable_colors,
        min_level=min_level,
        log_directory=LOG_DIRECTORY if FILE_LOGGING else None
    )
    return _global_logger


# === Module-level convenience functions ===

def log(level: LogLevel, message: str,
        log_type: LogType = LogType.GENERAL,
        data: Optional[Dict[str, Any]] = None):
    """Module-level logging function using the global logger."""
    get_logger().log(level, message, log_type, data)


def debug(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    """Log debug message using global logger."""
    log(LogLevel.DEBUG, message, log_type, data)


def info(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    """Log info message using global logger."""
    log(LogLevel.INFO, message, log_type, data)


def warning(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    """Log warning message using global logger."""
    log(LogLevel.WARNING, message, log_type, data)


def error(message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict[str, Any]] = None):
    """Log error message using global logger."""
    log(LogLevel.ERROR, message, log_type, data)
