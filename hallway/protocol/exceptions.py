"""Hallway 协议异常

读任务把这里的任何异常都视为无效帧：记录日志并结束会话，不回传给对端。
"""


class ProtocolException(Exception):
    """信封编解码失败的基类，``Session.read_pump`` 只捕获这一种"""


class ValidationException(ProtocolException):
    """JSON 合法但结构不对

    由 ``Envelope.from_dict`` 和各载荷的 ``from_dict`` 抛出：缺少 ``type``、
    载荷不是对象、``message`` 不是字符串、``count`` 为负数等。
    ``HistoryBuffer.append`` 收到非聊天信封时也会抛出。
    """


class SerializationException(ProtocolException):
    """帧本身无法解析或信封无法编码

    包括非 JSON 文本、无效 UTF-8 字节以及嵌套过深的数组/对象。
    """
