"""HTTP receiver that turns webhook posts, optionally HMAC-signed, into queued events."""