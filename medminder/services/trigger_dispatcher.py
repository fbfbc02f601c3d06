import asyncio
import logging
from medminder.services.notifications import NotificationCenter, NotificationService

logger = logging.getLogger(__name__)


#------This Function delivers every trigger that is due---------
async def dispatch_due_triggers(center: NotificationCenter, sender: NotificationService) -> int:
    due = await center.pop_due(center.clock.now())
    delivered = 0
    for trigger in due:
        if await sender.send_dose_reminder(trigger):
            delivered += 1
        else:
            logger.warning(f"Reminder {trigger.id} could not be delivered")
    return delivered


#------This Function runs the dispatcher loop---------
async def run_trigger_dispatcher(
    center: NotificationCenter, sender: NotificationService, interval_seconds: int = 30
):
    logger.info("Starting reminder dispatch task")

    while True:
        try:
            await asyncio.sleep(interval_seconds)

            count = await dispatch_due_triggers(center, sender)

            if count > 0:
                logger.info(f"Delivered {count} reminder(s)")

        except asyncio.CancelledError:
            logger.info("Dispatch task cancelled")
            break
        except Exception as e:
            logger.error(f"Error in dispatch task: {e}", exc_info=True)
