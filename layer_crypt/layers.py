"""
Layer selection for multi-platform images.

Layers are addressed per platform: index 0 is the bottommost layer of a
platform's manifest and -1 its topmost one.
"""

from collections.abc import Sequence

from layer_crypt import platforms
from layer_crypt.crypto.protocol import LayerFilter
from layer_crypt.models.image import Descriptor, LayerInfo, Platform


def is_user_selected_layer(layer_index: int, layers_total: int, layers: Sequence[int]) -> bool:
    """
    Check whether a layer is selected by its positive or negative index.

    Args:
        layer_index: Zero-based index within the platform's layers.
        layers_total: Number of layers of the platform.
        layers: Requested selectors. Empty selects every layer.
    """
    if not layers:
        return True
    negative_index = layer_index - layers_total
    return any(selector in (layer_index, negative_index) for selector in layers)


def is_user_selected_platform(platform: Platform | None, platform_list: Sequence[Platform]) -> bool:
    """
    Check whether a layer's platform matches one of the requested platforms.

    An empty platform list selects every platform. A layer without a platform
    only passes an empty list.
    """
    if not platform_list:
        return True
    if platform is None:
        return False
    return any(platforms.matches(platform, requested) for requested in platform_list)


def count_layers(descs: Sequence[Descriptor], start: int) -> int:
    """Count the run of descriptors from start sharing exactly its platform."""
    platform = descs[start].platform
    count = 0
    for desc in descs[start:]:
        if desc.platform != platform:
            break
        count += 1
    return count


def filter_layer_descriptors(
    all_descs: Sequence[Descriptor],
    layers: Sequence[int],
    platform_list: Sequence[Platform],
) -> tuple[list[LayerInfo], list[Descriptor]]:
    """
    Select the layers matching both the index selectors and the platform filter.

    Platform segments are delimited by exact platform equality, so the index of
    a layer restarts at 0 whenever the platform changes between two
    consecutive descriptors. The platform filter itself uses normalized
    matching.

    Args:
        all_descs: Layer descriptors of every platform, in manifest order.
        layers: Signed layer selectors. Empty selects every layer.
        platform_list: Requested platforms. Empty selects every platform.

    Returns:
        Tuple of (layer infos, descriptors) for the selected layers.
    """
    layer_infos: list[LayerInfo] = []
    descs: list[Descriptor] = []

    current: Platform | None = None
    layer_index = 0
    layers_total = 0
    for position, desc in enumerate(all_descs):
        if position == 0 or desc.platform != current:
            current = desc.platform
            layer_index = 0
            layers_total = count_layers(all_descs, position)
        else:
            layer_index += 1

        if is_user_selected_layer(layer_index, layers_total, layers) and is_user_selected_platform(
            current, platform_list
        ):
            layer_infos.append(LayerInfo(index=layer_index, descriptor=desc))
            descs.append(desc)

    return layer_infos, descs


def create_layer_filter(descs: Sequence[Descriptor]) -> LayerFilter:
    """
    Build a predicate selecting descriptors by content digest.

    Args:
        descs: The selected layer descriptors.

    Returns:
        A callable returning True for descriptors whose digest is selected.
    """
    digests = frozenset(desc.digest for desc in descs)

    def _layer_filter(desc: Descriptor) -> bool:
        return desc.digest in digests

    return _layer_filter
