class MedMinderError(Exception):
    pass


#------Raised when an update or delete references a missing record---------
class NotFoundError(MedMinderError):

    def __init__(self, kind: str, record_id: str):
        self.kind = kind
        self.record_id = record_id
        super().__init__(f"{kind} {record_id} not found")


#------Raised when the persistence layer cannot read or write---------
class StorageFailure(MedMinderError):
    pass


#------Raised by a notification center when one trigger cannot be created---------
class TriggerCreationFailure(MedMinderError):

    def __init__(self, trigger_id: str, reason: str = ""):
        self.trigger_id = trigger_id
        super().__init__(f"Could not create trigger {trigger_id}: {reason}" if reason else f"Could not create trigger {trigger_id}")
