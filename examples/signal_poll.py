"""Poll the fused signal prediction for a coordinate."""

import logging
import sys
import time
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave import AppConfiguration, Coordinate, PredictionFusionService

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


def main(latitude: float, longitude: float, polls: int = 10):
    config = AppConfiguration.from_env()
    service = PredictionFusionService.from_config(config)
    coordinate = Coordinate(latitude, longitude)

    print(f"Mode: {config.prediction_mode.value}")
    try:
        for _ in range(polls):
            signal = service.signal_prediction(coordinate)
            if signal is None:
                print("No prediction available")
            else:
                flag = "" if signal.confidence >= config.low_confidence_threshold else " (low confidence)"
                print(
                    f"{signal.intersection_name}: {signal.phase.display_name}, "
                    f"green in {signal.countdown_to_green()}s, "
                    f"source {signal.source}, confidence {signal.confidence:.0%}{flag}"
                )
            time.sleep(config.signal_polling_interval)
    except KeyboardInterrupt:
        print("\nStopped")
    finally:
        service.close()


if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python signal_poll.py <latitude> <longitude>")
        sys.exit(1)
    main(float(sys.argv[1]), float(sys.argv[2]))
