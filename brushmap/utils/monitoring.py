"""Performance monitoring for API requests and geometry operations"""

import time
import functools
from typing import Callable, Dict, Any, Optional, List
import structlog
from datetime import datetime
import threading
from collections import deque

from brushmap.config.settings import settings

logger = structlog.get_logger(__name__)

class PerformanceMonitor:
    """Track operation latency and warn on slow ones"""

    def __init__(self, alert_threshold_seconds: float = 2.0, kind: str = "request"):
        self.alert_threshold = alert_threshold_seconds
        self.kind = kind
        self.metrics = {
            'total_operations': 0,
            'slow_operations': 0,
            'errors': 0,
            'total_duration': 0.0
        }
        self.recent = deque(maxlen=1000)  # Keep last 1000 operations
        self._lock = threading.Lock()

    def record(self, name: str, duration: float,
               error: Optional[str] = None, **details):
        """Record one operation's duration"""
        with self._lock:
            self.metrics['total_operations'] += 1
            self.metrics['total_duration'] += duration

            slow = duration > self.alert_threshold
            if slow:
                self.metrics['slow_operations'] += 1
                logger.warning(f"Slow {self.kind} detected",
                               name=name,
                               duration_ms=round(duration * 1000, 2),
                               threshold_ms=round(self.alert_threshold * 1000, 2),
                               **details)

            if error:
                self.metrics['errors'] += 1

            self.recent.append({
                'timestamp': datetime.utcnow(),
                'name': name,
                'duration': duration,
                'error': error,
                'slow': slow
            })

    def get_metrics(self) -> Dict[str, Any]:
        """Get current metrics"""
        with self._lock:
            total = self.metrics['total_operations']
            if total == 0:
                return {'status': f'no {self.kind}s yet'}

            avg_duration = self.metrics['total_duration'] / total
            slow_percentage = (self.metrics['slow_operations'] / total) * 100
            error_rate = (self.metrics['errors'] / total) * 100

            # Recent trend (last 100 operations)
            recent = list(self.recent)[-100:]
            recent_avg = sum(r['duration'] for r in recent) / len(recent) if recent else 0

            return {
                'total': total,
                'average_ms': round(avg_duration * 1000, 3),
                'slow': self.metrics['slow_operations'],
                'slow_percentage': round(slow_percentage, 2),
                'error_rate': round(error_rate, 2),
                'last_100_average_ms': round(recent_avg * 1000, 3),
                'alert_threshold_ms': round(self.alert_threshold * 1000, 3),
                'health_status': self._calculate_health_status(slow_percentage, error_rate)
            }

    def get_slow_operations(self) -> List[Dict]:
        """Get operations that are consistently slow"""
        with self._lock:
            stats = {}
            for entry in self.recent:
                item = stats.setdefault(entry['name'], {'count': 0, 'total': 0.0, 'slow_count': 0})
                item['count'] += 1
                item['total'] += entry['duration']
                if entry['slow']:
                    item['slow_count'] += 1

            slow = []
            for name, item in stats.items():
                avg = item['total'] / item['count']
                if avg > self.alert_threshold * 0.8:  # 80% of threshold
                    slow.append({
                        'name': name,
                        'average_ms': round(avg * 1000, 3),
                        'count': item['count'],
                        'slow_count': item['slow_count']
                    })

            return sorted(slow, key=lambda x: x['average_ms'], reverse=True)

    def _calculate_health_status(self, slow_percentage: float, error_rate: float) -> str:
        """Calculate overall health status"""
        if error_rate > 5 or slow_percentage > 20:
            return "unhealthy"
        elif error_rate > 2 or slow_percentage > 10:
            return "degraded"
        else:
            return "healthy"

# Global monitor instances
request_monitor = PerformanceMonitor(alert_threshold_seconds=2.0, kind="request")
geometry_monitor = PerformanceMonitor(
    alert_threshold_seconds=settings.SLOW_GEOMETRY_MS / 1000.0,
    kind="geometry operation"
)

def timed_geometry(func: Callable) -> Callable:
    """Decorator recording how long a geometry primitive takes"""
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        start_time = time.perf_counter()
        error = None
        try:
            return func(*args, **kwargs)
        except Exception as e:
            error = type(e).__name__
            raise
        finally:
            geometry_monitor.record(func.__name__, time.perf_counter() - start_time, error=error)

    return wrapper

# Middleware for Flask
def add_performance_monitoring(app):
    """Add request timing hooks to the Flask app"""
    from flask import request, g

    @app.before_request
    def before_request():
        g.start_time = time.time()

    @app.after_request
    def after_request(response):
        if hasattr(g, 'start_time'):
            response_time = time.time() - g.start_time

            request_monitor.record(
                request.endpoint or request.path,
                response_time,
                error=str(response.status_code) if response.status_code >= 500 else None,
                method=request.method
            )

            response.headers['X-Response-Time'] = f"{response_time:.3f}s"

        return response

def get_performance_report() -> Dict[str, Any]:
    """Get comprehensive performance report"""
    return {
        'requests': request_monitor.get_metrics(),
        'geometry': geometry_monitor.get_metrics(),
        'slow_endpoints': request_monitor.get_slow_operations(),
        'slow_geometry_operations': geometry_monitor.get_slow_operations(),
        'timestamp': datetime.utcnow().isoformat()
    }
