from typing import Optional, Tuple

from models.enums import DeliveryChannel, DeliveryMethod

# Attempt order matters: the aggregate outcome is folded in this order.
CHANNELS_FOR: dict[DeliveryMethod, Tuple[DeliveryChannel, ...]] = {
    DeliveryMethod.APP: (),
    DeliveryMethod.SMS: (DeliveryChannel.SMS,),
    DeliveryMethod.EMAIL: (DeliveryChannel.EMAIL,),
    DeliveryMethod.WHATSAPP: (DeliveryChannel.WHATSAPP,),
    DeliveryMethod.BOTH: (
        DeliveryChannel.SMS,
        DeliveryChannel.EMAIL,
        DeliveryChannel.WHATSAPP,
    ),
}


def resolve_delivery_method(
    requested: DeliveryMethod, preference: Optional[DeliveryMethod]
) -> DeliveryMethod:
    """Pick the channel set actually used for one tenant.

    | requested | tenant preference | effective  |
    |-----------|-------------------|------------|
    | both      | anything          | both       |
    | any       | both              | both       |
    | any       | single method     | preference |
    | any       | none              | requested  |
    """
    requested = DeliveryMethod(requested)
    if requested == DeliveryMethod.BOTH:
        return DeliveryMethod.BOTH
    if preference is None:
        return requested
    return DeliveryMethod(preference)


def channels_for(method: DeliveryMethod) -> Tuple[DeliveryChannel, ...]:
    return CHANNELS_FOR[DeliveryMethod(method)]
