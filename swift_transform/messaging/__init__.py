from .publisher import InMemoryQueuePublisher, PublishedMessage, QueuePublisher

__all__ = ["InMemoryQueuePublisher", "PublishedMessage", "QueuePublisher"]
