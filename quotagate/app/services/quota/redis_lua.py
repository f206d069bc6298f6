"""Redis Lua scripts for the shared sliding-window counter.

The script approximates a sliding window with two fixed buckets: the
previous bucket's count is weighted by how much of it still overlaps the
sliding window. Check and increment run atomically inside Redis.
"""

# KEYS[1] current bucket, KEYS[2] previous bucket
# ARGV[1] limit, ARGV[2] now (ms), ARGV[3] window (ms), ARGV[4] increment
# Returns remaining after the increment, or -1 when the request is denied
SLIDING_WINDOW_SCRIPT = """
    local current_key = KEYS[1]
    local previous_key = KEYS[2]
    local limit = tonumber(ARGV[1])
    local now = tonumber(ARGV[2])
    local window = tonumber(ARGV[3])
    local increment_by = tonumber(ARGV[4])

    local current = tonumber(redis.call('GET', current_key) or '0')
    local previous = tonumber(redis.call('GET', previous_key) or '0')

    -- Weight the previous bucket by its overlap with the sliding window
    local elapsed_ratio = (now % window) / window
    previous = math.floor((1 - elapsed_ratio) * previous)

    if previous + current >= limit then
        return -1
    end

    local new_value = redis.call('INCRBY', current_key, increment_by)
    if new_value == increment_by then
        -- Keep the bucket alive long enough to serve as the next "previous"
        redis.call('PEXPIRE', current_key, window * 2 + 1000)
    end

    return limit - (new_value + previous)
"""
