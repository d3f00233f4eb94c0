"""
Errors raised by the signal bot operations
"""


class SignalBotError(Exception):
    """Base error; status_code is the HTTP status reported to callers"""
    status_code = 500

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self):
        payload = {'error': self.message}
        payload.update(self.extra)
        return payload


class UnknownActionError(SignalBotError):
    status_code = 400

    def __init__(self, action=None):
        super().__init__('Unknown action')
        self.action = action


class BotNotFoundError(SignalBotError):
    status_code = 404

    def __init__(self, bot_type: str):
        super().__init__('Bot not found')
        self.bot_type = bot_type


class BotNotRunningError(SignalBotError):
    status_code = 400

    def __init__(self, bot_type: str):
        super().__init__('Bot is not running')
        self.bot_type = bot_type


class ActorResolutionError(SignalBotError):
    status_code = 400

    def __init__(self):
        super().__init__('No valid admin user found.', signalsGenerated=0)


class SignalNotFoundError(SignalBotError):
    status_code = 404

    def __init__(self, signal_id: str):
        super().__init__('Signal not found')
        self.signal_id = signal_id
