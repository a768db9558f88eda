from .receipt import ReceiptResendRequest, DeliveryLogRead, DeliverySummary
