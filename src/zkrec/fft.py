def pows(a, n, p):
    r = 1
    for _ in range(n):
        yield r
        r = r * a % p


def pru(n, p):  # primitive n-th root of unity in GF(p)
    assert n & n - 1 == 0 and p - 1 & n - 1 == 0
    for z in range(2, p):
        if pow(z, (p - 1) // 2, p) != 1:  # z is a quadratic non-residue
            break
    return pow(z, (p - 1) // n, p)


def fft(a, w, p):
    n = len(a)
    if n == 1:
        return list(a)
    t = w * w % p
    b = fft(a[0::2], t, p)
    c = fft(a[1::2], t, p)
    k = 1
    for i in range(n // 2):
        b[i], c[i], k = (b[i] + k * c[i]) % p, (b[i] - k * c[i]) % p, k * w % p
    return b + c


def ifft(a, w, p):
    n = len(a)
    m = pow(n, -1, p)
    return [x * m % p for x in fft(a, pow(w, -1, p), p)]


# Evaluation and interpolation on the coset k⋅<w> instead of the subgroup <w>, needed whenever the
# vanishing polynomial of <w> would have to be divided out.


def coset_fft(a, k, w, p):
    return fft([x * t % p for x, t in zip(a, pows(k, len(a), p))], w, p)


def coset_ifft(a, k, w, p):
    return [x * t % p for x, t in zip(ifft(a, w, p), pows(pow(k, -1, p), len(a), p))]
