from collections import Counter
from dataclasses import dataclass, field
import heapq
import logging

logger = logging.getLogger(__name__)

# Kích thước gốc: mỗi ký tự tính 8 bit
BITS_PER_SYMBOL = 8

STAGES = ("analyzing", "building-tree", "encoding", "complete")


class HuffmanError(Exception):
    """Lớp cơ sở cho mọi lỗi của bộ mã hóa Huffman."""


class EmptyInputError(HuffmanError):
    pass


class MissingCodeError(HuffmanError):
    pass


class InvalidTreeError(HuffmanError):
    pass


class InvalidPayloadError(HuffmanError):
    pass


class MalformedPathError(HuffmanError):
    pass


class Node:
    def __init__(self, symbol=None, freq=0, left=None, right=None):
        self.symbol = symbol
        self.freq = freq
        self.left = left
        self.right = right

    def is_leaf(self):
        return self.symbol is not None

    def leaf_count(self):
        count = 0
        stack = [self]
        while stack:
            node = stack.pop()
            if node.is_leaf():
                count += 1
                continue
            stack.extend(child for child in (node.left, node.right) if child is not None)
        return count

    def __repr__(self):
        if self.is_leaf():
            return f"Node({self.symbol!r}, {self.freq})"
        return f"Node(freq={self.freq}, left={self.left!r}, right={self.right!r})"


@dataclass(frozen=True)
class ProgressEvent:
    stage: str
    progress: int
    message: str

    def __post_init__(self):
        if self.stage not in STAGES:
            raise ValueError(f"unknown stage {self.stage!r}")
        if not 0 <= self.progress <= 100:
            raise ValueError(f"progress out of range: {self.progress}")

    def to_dict(self):
        return {"stage": self.stage, "progress": self.progress, "message": self.message}


class ProgressReporter:
    """
    Nhận thông báo tiến độ trong lúc nén.
    Mặc định bỏ qua mọi sự kiện; lớp con ghi đè `report`.
    """

    def report(self, event: ProgressEvent):
        pass


class ProgressLog(ProgressReporter):
    """Lưu các sự kiện theo thứ tự, tiến độ không được giảm."""

    def __init__(self):
        self.events = []

    def report(self, event: ProgressEvent):
        if self.events and event.progress < self.events[-1].progress:
            raise ValueError(
                f"progress went backwards: {self.events[-1].progress} -> {event.progress}"
            )
        self.events.append(event)

    def messages(self):
        return [e.message for e in self.events]


def _notify(reporter, stage, progress, message):
    logger.debug("%s (%d%%): %s", stage, progress, message)
    if reporter is not None:
        reporter.report(ProgressEvent(stage, progress, message))


@dataclass
class CompressionResult:
    encoded: str
    tree: Node
    codes: dict
    original_size: int
    encoded_size: int
    compression_ratio: float = field(init=False)

    def __post_init__(self):
        self.compression_ratio = (
            (self.original_size - self.encoded_size) / self.original_size * 100
        )

    @property
    def space_saved(self):
        return self.original_size - self.encoded_size

    @property
    def size_factor(self):
        if self.encoded_size == 0:
            return None
        return self.original_size / self.encoded_size


def build_frequency_table(text: str, reporter=None):
    """
    Đếm tần suất xuất hiện của từng ký tự.
    Thứ tự khóa theo lần xuất hiện đầu tiên.
    """
    if not text:
        raise EmptyInputError("Text cannot be empty")
    _notify(reporter, "analyzing", 10, "Analyzing character frequencies...")
    return dict(Counter(text))


def build_tree(freq, reporter=None):
    """
    Xây dựng cây Huffman từ bảng tần suất.

    Phần tử trong heap là (tần suất, thứ tự, nút): cùng tần suất thì nút vào
    trước ra trước, nên cùng một bảng luôn cho cùng một cây.
    """
    if not freq:
        raise EmptyInputError("Frequency table cannot be empty")
    _notify(reporter, "building-tree", 30, "Building Huffman tree...")

    heap = []
    seq = 0
    for symbol, count in freq.items():
        heap.append((count, seq, Node(symbol, count)))
        seq += 1
    heapq.heapify(heap)

    # Nếu dữ liệu chỉ có 1 loại ký tự, gốc chính là lá
    while len(heap) > 1:
        lo_freq, _, lo = heapq.heappop(heap)
        hi_freq, _, hi = heapq.heappop(heap)
        merged = Node(None, lo_freq + hi_freq, lo, hi)
        heapq.heappush(heap, (merged.freq, seq, merged))
        seq += 1

    root = heap[0][2]
    logger.debug("built tree over %d symbols, weight %d", len(freq), root.freq)
    return root


def build_codes(node, prefix="", codebook=None):
    """
    Duyệt cây Huffman và sinh bảng mã nhị phân.
    """
    if codebook is None:
        codebook = {}
    if node is None:
        return codebook

    if node.is_leaf():
        # Nếu chỉ có 1 ký tự, gán mã "0"
        codebook[node.symbol] = prefix or "0"
    else:
        build_codes(node.left, prefix + "0", codebook)
        build_codes(node.right, prefix + "1", codebook)
    return codebook


def encode(text: str, codes, tree, reporter=None):
    if not text:
        raise EmptyInputError("Text cannot be empty")
    _notify(reporter, "encoding", 70, "Encoding text...")

    parts = []
    for symbol in text:
        try:
            parts.append(codes[symbol])
        except KeyError:
            raise MissingCodeError(f"No code for symbol {symbol!r}") from None
    encoded = "".join(parts)

    result = CompressionResult(
        encoded=encoded,
        tree=tree,
        codes=codes,
        original_size=len(text) * BITS_PER_SYMBOL,
        encoded_size=len(encoded),
    )
    _notify(reporter, "complete", 100, "Compression complete!")
    return result


def decode(bits: str, tree, strict=False):
    """
    Giải mã chuỗi bit bằng cách duyệt cây từng bit, gặp lá thì xuất ký tự
    và quay lại gốc.

    Mã cuối chưa tới lá sẽ bị bỏ qua, trừ khi `strict` được bật thì báo
    MalformedPathError.
    """
    if not isinstance(tree, Node):
        raise InvalidTreeError("Invalid Huffman tree")
    if not isinstance(bits, str):
        raise InvalidPayloadError("Invalid compressed data")
    if not bits:
        if tree.is_leaf():
            return ""
        raise InvalidPayloadError("Compressed data cannot be empty")

    out = []
    node = tree
    for pos, bit in enumerate(bits):
        if bit == "0":
            nxt = node.left
        elif bit == "1":
            nxt = node.right
        else:
            raise InvalidPayloadError(f"Invalid bit {bit!r} at position {pos}")

        if node.is_leaf():
            # Cây chỉ có 1 lá: mã duy nhất là "0"
            if bit != "0":
                raise MalformedPathError(f"No branch for bit '1' at position {pos}")
            out.append(node.symbol)
            continue
        if nxt is None:
            raise MalformedPathError(f"No branch for bit {bit!r} at position {pos}")

        node = nxt
        if node.is_leaf():
            out.append(node.symbol)
            node = tree

    if node is not tree:
        if strict:
            raise MalformedPathError("Compressed data ends inside a code")
        logger.warning("dropping incomplete trailing code")
    return "".join(out)


def huffman_compress(text: str, reporter=None):
    """
    Nén văn bản bằng Huffman.
    Trả về: CompressionResult (chuỗi bit, cây, bảng mã, kích thước)
    """
    freq = build_frequency_table(text, reporter)
    tree = build_tree(freq, reporter)
    codes = build_codes(tree)
    return encode(text, codes, tree, reporter)


def huffman_decompress(bits: str, tree, strict=False):
    return decode(bits, tree, strict=strict)


def tree_to_dict(node):
    if node is None:
        return None
    return {
        "symbol": node.symbol,
        "frequency": node.freq,
        "left": tree_to_dict(node.left),
        "right": tree_to_dict(node.right),
    }


def tree_from_dict(data):
    """
    Dựng lại cây từ dict (tree_to_dict hoặc file .huff cũ) và kiểm tra cấu trúc.
    """
    if not isinstance(data, dict):
        raise InvalidTreeError("Tree node must be an object")
    try:
        # File .huff cũ dùng khóa "char"
        symbol = data["symbol"] if "symbol" in data else data["char"]
        freq = data["frequency"]
        left = data["left"]
        right = data["right"]
    except KeyError as e:
        raise InvalidTreeError(f"Tree node is missing {e.args[0]!r}") from None

    if isinstance(freq, bool) or not isinstance(freq, int) or freq <= 0:
        raise InvalidTreeError(f"Invalid frequency: {freq!r}")

    if symbol is not None:
        if not isinstance(symbol, str) or len(symbol) != 1:
            raise InvalidTreeError(f"Invalid symbol: {symbol!r}")
        if left is not None or right is not None:
            raise InvalidTreeError(f"Leaf {symbol!r} has children")
        return Node(symbol, freq)

    if left is None or right is None:
        raise InvalidTreeError("Internal node needs two children")
    node = Node(None, freq, tree_from_dict(left), tree_from_dict(right))
    if node.left.freq + node.right.freq != freq:
        raise InvalidTreeError("Internal node frequency does not match its children")
    return node
