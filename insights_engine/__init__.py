
from .models import (
    AccessContext, CheckIn, CheckInBatch, EmotionStat, EmotionSummary, InsightRecord, InsightType,
    PeriodWindow, Priority, Recommendation, TriggerPatterns,
)
from .errors import (
    AccessDenied, ConfigurationError, InsightsError, InvalidAccessToken, MalformedRecord, UpstreamUnavailable,
)
from .aggregator import summarize, dominant_emotion
from .patterns import mine, dominant_time_slot
from .recommendations import recommend
from .subscription import SubscriptionTier, require_premium
from .config import InsightsSettings
from .engine import InsightsEngine
